"""
bayescan.py
===========

BayeScan 文件写出模块（Export Layer）
Write a BayeScan input file from tidy genotype data.

本模块串联整个转换流程：群体选择 → 共有标记 → 单态标记剔除
→ 二等位检测 → 等位基因重编码 → LD 修剪 → 字典编码
→ 等位基因计数 → 按固定语法写出 BayeScan 文件及两个字典表。

This module chains the whole conversion: population selection →
common markers → monomorphic removal → biallelic detection → allele
re-coding → LD pruning → dictionary encoding → allele counts → the
BayeScan file in its fixed grammar plus the two dictionary tables.

Functions
---------
write_bayescan
    主入口，写出 BayeScan 文件并返回字典。
    Main entry point; writes the file and returns the dictionaries.

format_biallelic_block, format_multiallelic_block
    将单个群体的计数格式化为文本行。
    Format the counts of one population as text lines.

write_bayescan_file
    以原子方式写出 BayeScan 文本（临时文件 + 重命名）。
    Atomically write the BayeScan text (temporary file + rename).

Description
-----------
输出文件语法 / Output grammar::

    [loci]=<n_markers>

    [populations]=<n_populations>

    [pop]=<pop_code>
    <marker>  <gene_n>  <allele_n>  <ref>  <alt>      (biallelic)
    <marker> <gene_n> <k> <c1> ... <ck>                (multiallelic)

二等位行以两个空格分隔，多等位行以一个空格分隔。

Biallelic rows are separated by two spaces, multiallelic rows by one.

References
----------
Foll, M and OE Gaggiotti (2008) A genome scan method to identify
selected loci appropriate for both dominant and codominant markers:
A Bayesian perspective. Genetics 180: 977-993.
"""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Tuple

import pandas as pd

from tidy_bayescan.biallelic import detect_biallelic_markers
from tidy_bayescan.config import BayeScanConfig
from tidy_bayescan.counts import biallelic_counts, multiallelic_counts
from tidy_bayescan.dictionary import encode_dictionaries
from tidy_bayescan.errors import MissingInputError
from tidy_bayescan.filters import (
    check_not_empty,
    discard_monomorphic_markers,
    keep_common_markers,
    prune_snp_ld,
    select_populations,
)
from tidy_bayescan.io import generate_filename, read_input
from tidy_bayescan.recode import change_alleles


@dataclass
class BayeScanResult:
    """
    ``write_bayescan`` 的返回结果

    Result of ``write_bayescan``: the two dictionaries, the written
    paths and a few dataset sizes.
    """

    pop_dictionary: pd.DataFrame
    markers_dictionary: pd.DataFrame
    filename: Path
    pop_dictionary_path: Path
    markers_dictionary_path: Path
    biallelic: bool
    n_markers: int
    n_populations: int
    n_individuals: int


def format_biallelic_block(counts: pd.DataFrame) -> List[str]:
    """单个群体的二等位行（两个空格分隔）。"""
    counts = counts.sort_values("BAYESCAN_MARKERS")
    return [
        f"{m}  {n}  {k}  {ref}  {alt}"
        for m, n, k, ref, alt in zip(
            counts["BAYESCAN_MARKERS"], counts["GENE_N"], counts["ALLELE_N"], counts["REF"], counts["ALT"]
        )
    ]


def format_multiallelic_block(counts: pd.DataFrame) -> List[str]:
    """单个群体的多等位行（一个空格分隔）。"""
    counts = counts.sort_values("BAYESCAN_MARKERS")
    return [
        " ".join(str(v) for v in [m, n, k, *c])
        for m, n, k, c in zip(counts["BAYESCAN_MARKERS"], counts["GENE_N"], counts["ALLELE_N"], counts["COUNTS"])
    ]


def bayescan_blocks(counts: pd.DataFrame, biallelic: bool) -> List[Tuple[int, List[str]]]:
    """
    按群体切分计数表

    Split the counts into ``(pop_code, lines)`` blocks. Biallelic blocks
    follow the order in which population codes appear in ``counts``;
    multiallelic blocks follow the ascending split on the population
    code.
    """

    if biallelic:
        pops = pd.unique(counts["BAYESCAN_POP"])
        return [(int(p), format_biallelic_block(counts.loc[counts["BAYESCAN_POP"] == p])) for p in pops]
    return [
        (int(p), format_multiallelic_block(group))
        for p, group in counts.groupby("BAYESCAN_POP", sort=True)
    ]


def write_bayescan_file(
        path: str | Path,
        n_markers: int,
        n_populations: int,
        blocks: Iterable[Tuple[int, List[str]]]
) -> Path:
    """
    以原子方式写出 BayeScan 文件

    Atomically write a BayeScan file.

    内容先按顺序追加写入同目录下的临时文件，
    全部成功后再通过 ``os.replace`` 重命名为目标文件；
    任何异常都会删除临时文件，不会留下截断的输出。

    The content is appended in order to a temporary file in the target
    directory, which is renamed onto the target with ``os.replace``
    only once everything succeeded. Any exception removes the temporary
    file, so no truncated output is left behind.

    Returns
    -------
    pathlib.Path
        写出的文件路径。 Path of the written file.
    """

    path = Path(path)
    tmp_path = _stage_bayescan_file(path, n_markers, n_populations, blocks)
    _commit([(tmp_path, path)])
    return path


def _current_umask() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return umask


def _temp_file(path: Path):
    """目标目录中的临时文件，权限与普通新建文件一致 / Temp file beside ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}_", suffix=".tmp")
    # mkstemp 固定为 0600
    os.chmod(tmp_path, 0o666 & ~_current_umask())
    return fd, tmp_path


def _discard(tmp_paths) -> None:
    for tmp_path in tmp_paths:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def _stage_bayescan_file(path: Path, n_markers: int, n_populations: int, blocks) -> str:
    """写出到临时文件并返回其路径；失败时删除临时文件。"""
    fd, tmp_path = _temp_file(path)
    try:
        with os.fdopen(fd, "w", newline="\n") as fh:
            fh.write(f"[loci]={n_markers}\n\n")
            fh.write(f"[populations]={n_populations}\n\n")
            for pop, lines in blocks:
                fh.write(f"[pop]={pop}\n")
                for line in lines:
                    fh.write(line + "\n")
                fh.write("\n")
    except BaseException:
        _discard([tmp_path])
        raise
    return tmp_path


def _stage_tsv(df: pd.DataFrame, path: Path) -> str:
    fd, tmp_path = _temp_file(path)
    try:
        with os.fdopen(fd, "w", newline="") as fh:
            df.to_csv(fh, sep="\t", index=False)
    except BaseException:
        _discard([tmp_path])
        raise
    return tmp_path


def _commit(staged: List[Tuple[str, Path]]) -> None:
    """全部写出成功后依次重命名为目标文件 / Rename every staged file onto its target."""
    for tmp_path, path in staged:
        os.replace(tmp_path, path)


def _companion_path(filename: Path, suffix: str) -> Path:
    return filename.with_name(f"{filename.stem}{suffix}")


def write_bayescan(
        data,
        pop_select=None,
        snp_ld=None,
        filename: str | Path | None = None,
        parallel_core: int | None = None,
        random_state: int | None = None,
        verbose: bool = True,
        config: BayeScanConfig | None = None
) -> BayeScanResult:
    """
    由 tidy 数据写出 BayeScan 文件

    Write a BayeScan file from tidy data. The data is bi- or
    multi-allelic.

    Parameters
    ----------
    data : pandas.DataFrame or str or pathlib.Path
        tidy 表或其文件路径。
        Tidy data, or the path of a tidy file.

    pop_select : list of str or int, optional
        仅保留这些群体。 Keep these populations only.

    snp_ld : str or int, optional
        短距离 LD 修剪参数，见 ``filters.prune_snp_ld``；
        仅当数据包含 ``LOCUS`` 与 ``POS`` 时执行。

        Short-distance LD pruning, see ``filters.prune_snp_ld``; only
        applied when the data has ``LOCUS`` and ``POS``.

    filename : str or pathlib.Path, optional
        输出文件基础名称。为 ``None`` 时生成 ``bayescan_<timestamp>.txt``；
        目标已存在时追加时间戳，不会覆盖。

        Output base name. ``None`` generates
        ``bayescan_<timestamp>.txt``; an existing target gets a
        timestamp appended instead of being overwritten.

    parallel_core : int, optional
        等位基因重编码的并行任务数，默认逻辑核数减一。

        Parallel jobs of the allele re-coding, default logical cores
        minus one.

    random_state : int, optional
        二等位检测抽样与 ``snp_ld="random"`` 的随机种子。

        Seed of the biallelic detection sampling and of
        ``snp_ld="random"``.

    verbose : bool, default=True
        是否打印进度信息。 Whether to print progress messages.

    config : BayeScanConfig, optional
        已校验的参数对象；给出时忽略上面的同名关键字参数。

        Validated options; when given, the keyword arguments above are
        ignored.

    Returns
    -------
    BayeScanResult
        群体字典、标记字典以及写出的文件路径。

        Population dictionary, markers dictionary and written paths.

    Raises
    ------
    MissingInputError
        未提供数据或数据为空，在打开任何文件之前抛出。
        No data or empty data; raised before any file is opened.

    EmptyResultError
        过滤后没有剩余的标记或个体。
        No marker or individual left after filtering.
    """

    if data is None:
        raise MissingInputError("Input file is missing")
    if config is None:
        options = {
            "pop_select": pop_select,
            "snp_ld": snp_ld,
            "filename": None if filename is None else str(filename),
            "parallel_core": parallel_core,
            "random_state": random_state,
            "verbose": verbose,
        }
        config = BayeScanConfig(**{k: v for k, v in options.items() if v is not None})
    verbose = config.verbose

    if verbose:
        print("[INFO] Generating BayeScan file...")
    data = read_input(data)

    if config.pop_select is not None:
        data = select_populations(data, config.pop_select, verbose=verbose)

    data, _ = keep_common_markers(data, verbose=verbose)
    check_not_empty(data, "keeping common markers")
    data, _ = discard_monomorphic_markers(data, verbose=verbose)
    check_not_empty(data, "removing monomorphic markers")

    biallelic = detect_biallelic_markers(data, verbose=verbose, random_state=config.random_state)

    if not biallelic:
        haplo = next(c for c in ("GT_VCF_NUC", "GT", "GT_VCF") if c in data.columns)
        keep = [c for c in ("MARKERS", "CHROM", "LOCUS", "POS", "INDIVIDUALS", "POP_ID") if c in data.columns]
        data = data[keep + [haplo]].rename(columns={haplo: "GT_HAPLO"})
        data = change_alleles(data, biallelic=False, parallel_core=config.parallel_core, verbose=verbose)

    if config.snp_ld is not None:
        if "LOCUS" in data.columns and "POS" in data.columns:
            data = prune_snp_ld(data, config.snp_ld, random_state=config.random_state, verbose=verbose)
            check_not_empty(data, "short distance LD pruning")
        elif verbose:
            print("[WARN] snp_ld ignored: LOCUS and POS columns are required.")

    if biallelic:
        if "GT_BIN" not in data.columns:
            data = change_alleles(data, biallelic=True, parallel_core=config.parallel_core, verbose=verbose)
        data = data[["MARKERS", "INDIVIDUALS", "POP_ID", "GT_BIN"]]

    n_ind = data["INDIVIDUALS"].nunique()
    n_pop = data["POP_ID"].nunique()
    n_markers = data["MARKERS"].nunique()

    data, pop_dictionary, markers_dictionary = encode_dictionaries(data)

    if biallelic:
        counts = biallelic_counts(data)
    else:
        counts = multiallelic_counts(data)
    blocks = bayescan_blocks(counts, biallelic)

    out_path = generate_filename(config.filename, prefix="bayescan", extension=".txt")
    if verbose:
        markers_type = "biallelic" if biallelic else "multiallelic"
        print(f"[INFO] Writing BayeScan file with:\n"
              f"       - Number of populations : {n_pop}\n"
              f"       - Number of individuals : {n_ind}\n"
              f"       - Number of {markers_type} markers : {n_markers}")
    pop_path = _companion_path(out_path, "_pop_dictionary.tsv")
    markers_path = _companion_path(out_path, "_markers_dictionary.tsv")

    # 三个文件全部写入临时文件后才重命名，任一失败都不留下输出
    staged = []
    try:
        staged.append((_stage_bayescan_file(out_path, n_markers, n_pop, blocks), out_path))
        staged.append((_stage_tsv(pop_dictionary.table, pop_path), pop_path))
        staged.append((_stage_tsv(markers_dictionary.table, markers_path), markers_path))
    except BaseException:
        _discard([tmp_path for tmp_path, _ in staged])
        raise
    _commit(staged)

    if verbose:
        print(f"[OK] Saved table: {pop_path.resolve()} ({len(pop_dictionary)} rows)")
        print(f"[OK] Saved table: {markers_path.resolve()} ({len(markers_dictionary)} rows)")
        print(f"[OK] BayeScan file written: {out_path}")

    return BayeScanResult(
        pop_dictionary=pop_dictionary.table,
        markers_dictionary=markers_dictionary.table,
        filename=out_path,
        pop_dictionary_path=pop_path,
        markers_dictionary_path=markers_path,
        biallelic=biallelic,
        n_markers=n_markers,
        n_populations=n_pop,
        n_individuals=n_ind,
    )
