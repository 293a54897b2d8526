"""
io.py
=====

文件读写模块（I/O Layer）
Input/Output module for tidy genotype tables and output artifacts.

本模块负责读取 tidy 格式的基因型表（每行一个 个体 × 标记 观测）、
样本分层表（strata），以及写出制表符分隔的结果表，
并提供带时间戳的输出文件命名规则。

This module loads tidy genotype tables (one row per individual × marker
observation) and strata tables, writes tab-separated result tables, and
implements the timestamped output naming rule.

Functions
---------
load_tidy
    读取 tidy 基因型文件（TSV / CSV / Parquet）。
    Read a tidy genotype file (TSV, CSV or Parquet).

load_strata
    读取个体到群体的分层表。
    Read an individual-to-population strata table.

read_input
    接受 DataFrame 或文件路径，统一返回 tidy DataFrame。
    Accept a DataFrame or a path and return a tidy DataFrame.

save_tsv
    将 DataFrame 导出为制表符分隔文件。
    Export a DataFrame as a tab-separated file.

generate_filename
    生成不会覆盖已有文件的输出文件名。
    Build an output filename that never clobbers an existing file.
"""

from datetime import datetime
from pathlib import Path

import pandas as pd

from tidy_bayescan.errors import MissingInputError

REQUIRED_COLUMNS = ("MARKERS", "INDIVIDUALS", "POP_ID")
NUMERIC_COLUMNS = ("GT_BIN", "POS")


def _normalize_tidy(df: pd.DataFrame) -> pd.DataFrame:
    """列名去空白、LOCUS→MARKERS、数值列转换 / Shared column normalization."""
    df.columns = [str(c).strip() for c in df.columns]
    # 保证使用唯一的 MARKERS 而不是可能重复的 LOCUS
    if "LOCUS" in df.columns and "MARKERS" not in df.columns:
        df = df.rename(columns={"LOCUS": "MARKERS"})

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise KeyError(f"Tidy data is missing required column(s): {missing}")

    for col in ("MARKERS", "INDIVIDUALS", "POP_ID"):
        df[col] = df[col].astype(str).str.strip()
    if "GT" in df.columns:
        df["GT"] = df["GT"].fillna("000000").astype(str).str.strip()
    for col in NUMERIC_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def load_tidy(
        path: str | Path,
        sep: str = "\t"
) -> pd.DataFrame:
    """
    读取 tidy 基因型文件

    Load a tidy genotype file.

    除数值列（``GT_BIN``、``POS``）外，所有列都按字符串读取，
    以保留 ``GT`` 编码（如 ``"001002"``）的前导零。

    Every column except the numeric ones (``GT_BIN``, ``POS``) is read as
    a string so that ``GT`` codes such as ``"001002"`` keep their
    leading zeros.

    Parameters
    ----------
    path : str or pathlib.Path
        文件路径。``.parquet`` 通过 pyarrow 读取，其余按分隔文本读取。

        Path of the file. ``.parquet`` files are read with pyarrow,
        anything else as delimited text.

    sep : str, default="\\t"
        文本文件的分隔符。``.csv`` 文件自动使用逗号。

        Delimiter of text files. ``.csv`` files always use a comma.

    Returns
    -------
    pandas.DataFrame
        规范化后的 tidy 表，至少包含 ``MARKERS``、``INDIVIDUALS``、``POP_ID``。

        Normalized tidy table with at least ``MARKERS``,
        ``INDIVIDUALS`` and ``POP_ID``.

    Raises
    ------
    FileNotFoundError
        文件不存在。 The file does not exist.

    RuntimeError
        文件解析失败。 Parsing the file failed.

    KeyError
        缺少必需列。 A required column is missing.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    try:
        if path.suffix == ".parquet":
            df = pd.read_parquet(path, engine="pyarrow")
            for col in df.columns:
                if col not in NUMERIC_COLUMNS:
                    df[col] = df[col].astype(str)
        else:
            if path.suffix == ".csv":
                sep = ","
            df = pd.read_csv(path, sep=sep, dtype=str, keep_default_na=False)
    except Exception as e:
        raise RuntimeError(f"Failed to load tidy data {path}: {e}")

    df = _normalize_tidy(df)
    print(f"[OK] Loaded tidy data: {path.name} ({len(df)} rows, {len(df.columns)} cols)")
    return df


def load_strata(
        path: str | Path,
        sep: str = "\t"
) -> pd.DataFrame:
    """
    读取分层表（``INDIVIDUALS`` → ``STRATA``）

    Load a strata table mapping ``INDIVIDUALS`` to ``STRATA``.
    A ``POP_ID`` column is accepted in place of ``STRATA``.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    strata = pd.read_csv(path, sep=sep, dtype=str)
    strata.columns = [c.strip() for c in strata.columns]
    if "STRATA" not in strata.columns and "POP_ID" in strata.columns:
        strata = strata.rename(columns={"POP_ID": "STRATA"})
    if "INDIVIDUALS" not in strata.columns or "STRATA" not in strata.columns:
        raise KeyError("The strata table needs INDIVIDUALS and STRATA columns.")
    strata["INDIVIDUALS"] = strata["INDIVIDUALS"].str.strip()
    strata["STRATA"] = strata["STRATA"].str.strip()
    return strata[["INDIVIDUALS", "STRATA"]]


def read_input(data, sep: str = "\t") -> pd.DataFrame:
    """
    统一数据入口：DataFrame 或文件路径

    Single entry point for the in-memory table or a path.

    Raises
    ------
    MissingInputError
        ``data`` 为 ``None`` 或为空表。 ``data`` is ``None`` or empty.
    """

    if data is None:
        raise MissingInputError("Input file missing")
    if isinstance(data, (str, Path)):
        return load_tidy(data, sep=sep)
    if not isinstance(data, pd.DataFrame):
        raise TypeError(f"Unsupported input type: {type(data).__name__}")
    if data.empty:
        raise MissingInputError("Input data is empty")
    return _normalize_tidy(data.copy())


def save_tsv(
        df: pd.DataFrame,
        path: str | Path,
        index: bool = False,
        verbose: bool = True,
) -> None:
    """
    将 DataFrame 导出为 TSV 文件（自动创建父目录）

    Export a DataFrame to a tab-separated file, creating parent
    directories when needed.
    """

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, sep="\t", index=index)

    if verbose:
        print(f"[OK] Saved table: {path.resolve()} ({len(df)} rows)")


def file_timestamp() -> str:
    return datetime.now().strftime("%Y%m%d@%H%M%S")


def generate_filename(
        filename: str | Path | None = None,
        prefix: str = "bayescan",
        extension: str = ".txt"
) -> Path:
    """
    生成输出文件名

    Build the output filename.

    命名规则：
    - 未给出 ``filename``：``<prefix>_<timestamp><extension>``；
    - 给出 ``filename`` 且目标不存在：``<filename><extension>``；
    - 目标（或 ``filename`` 本身）已存在：追加时间戳
      ``<filename>_<timestamp><extension>``，绝不覆盖。

    Naming rules:
    - no ``filename``: ``<prefix>_<timestamp><extension>``;
    - ``filename`` given and free: ``<filename><extension>``;
    - the target (or ``filename`` itself) already exists: a timestamp is
      appended, ``<filename>_<timestamp><extension>``; nothing is
      overwritten.

    Parameters
    ----------
    filename : str, pathlib.Path or None
        调用者给出的基础名称，可包含目录，可带或不带扩展名。

        Caller-supplied base name, optionally with directories and with
        or without the extension.

    prefix : str, default="bayescan"
        自动命名时使用的前缀。 Prefix of generated names.

    extension : str, default=".txt"
        输出扩展名。 Output extension.

    Returns
    -------
    pathlib.Path
    """

    if filename is None:
        candidate = Path(f"{prefix}_{file_timestamp()}{extension}")
    else:
        base = Path(filename)
        if base.suffix == extension:
            base = base.with_suffix("")
        candidate = base.with_name(base.name + extension)
        if base.exists() or candidate.exists():
            candidate = base.with_name(f"{base.name}_{file_timestamp()}{extension}")

    # 同一秒内重复调用时追加序号
    n = 1
    unique = candidate
    while unique.exists():
        unique = candidate.with_name(f"{candidate.stem}_{n}{extension}")
        n += 1
    return unique
