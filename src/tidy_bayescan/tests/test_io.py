import pandas as pd
import pytest
from tidy_bayescan import io
from tidy_bayescan.errors import MissingInputError


def test_load_tidy_keeps_leading_zeros(tmp_dir):
    """测试 tidy 文件读取保留 GT 前导零"""
    df = pd.DataFrame({
        "LOCUS": ["m1", "m1"],
        "INDIVIDUALS": ["i1", "i2"],
        "POP_ID": ["1", "2"],
        "GT": ["001002", "000000"],
    })
    path = tmp_dir / "tidy.tsv"
    df.to_csv(path, sep="\t", index=False)

    out = io.load_tidy(path)
    assert "MARKERS" in out.columns
    assert out["GT"].tolist() == ["001002", "000000"]
    assert out["POP_ID"].tolist() == ["1", "2"]


def test_load_tidy_csv(tmp_dir):
    """测试 CSV 自动使用逗号分隔"""
    path = tmp_dir / "tidy.csv"
    path.write_text("MARKERS,INDIVIDUALS,POP_ID,GT_BIN\nm1,i1,A,1\nm1,i2,B,\n")
    out = io.load_tidy(path)
    assert out["GT_BIN"].iloc[0] == 1
    assert pd.isna(out["GT_BIN"].iloc[1])


def test_load_tidy_errors(tmp_dir):
    """测试文件不存在与缺少必需列"""
    with pytest.raises(FileNotFoundError):
        io.load_tidy(tmp_dir / "nope.tsv")

    path = tmp_dir / "bad.tsv"
    path.write_text("MARKERS\tPOP_ID\nm1\tA\n")
    with pytest.raises(KeyError):
        io.load_tidy(path)


def test_load_strata(tmp_dir):
    """测试分层表读取（POP_ID 视为 STRATA）"""
    path = tmp_dir / "strata.tsv"
    path.write_text("INDIVIDUALS\tPOP_ID\ni1\tNorth\ni2\tSouth\n")
    strata = io.load_strata(path)
    assert list(strata.columns) == ["INDIVIDUALS", "STRATA"]
    assert strata["STRATA"].tolist() == ["North", "South"]


def test_read_input_missing():
    """测试空输入抛出 MissingInputError"""
    with pytest.raises(MissingInputError):
        io.read_input(None)
    with pytest.raises(MissingInputError):
        io.read_input(pd.DataFrame())
    with pytest.raises(TypeError):
        io.read_input(42)


def test_generate_filename(tmp_path):
    """测试输出文件命名规则与防覆盖"""
    auto = io.generate_filename(None)
    assert auto.name.startswith("bayescan_")
    assert auto.suffix == ".txt"

    target = io.generate_filename(tmp_path / "run")
    assert target == tmp_path / "run.txt"

    (tmp_path / "run.txt").write_text("keep")
    other = io.generate_filename(tmp_path / "run.txt")
    assert other != tmp_path / "run.txt"
    assert other.name.startswith("run_")
    assert other.suffix == ".txt"


def test_save_tsv(tmp_dir):
    """测试 TSV 导出并自动创建目录"""
    df = pd.DataFrame({"a": [1, 2]})
    path = tmp_dir / "sub" / "table.tsv"
    io.save_tsv(df, path, verbose=False)
    assert path.exists()
    assert path.read_text().splitlines()[0] == "a"
