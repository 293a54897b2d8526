import sys
from pathlib import Path
import pytest

if __name__ == "__main__":
    root = Path(__file__).resolve().parent
    src_path = root / "src"
    tests_path = src_path / "tidy_bayescan" / "tests"
    sys.path.insert(0, str(src_path))

    print(f"[INFO] Project root: {root}")
    print(f"[INFO] Running tidy_bayescan tests in: {tests_path}\n")

    # 额外的命令行参数原样传给 pytest，如 -k betas
    errno = pytest.main([str(tests_path), "--disable-warnings", *sys.argv[1:]])
    raise SystemExit(errno)
