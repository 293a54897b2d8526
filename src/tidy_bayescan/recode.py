"""
recode.py
=========

等位基因重编码模块
Allele re-coding of tidy genotypes.

本模块将基因型字符串（6 位等位基因编码，如 ``"001002"``，
或单倍型 / 核苷酸表示，如 ``"A/C"``）转换为：

- 二等位标记：剂量编码 ``GT_BIN``（替代等位基因个数 0/1/2）；
- 多等位标记：VCF 索引表示 ``GT_VCF``（如 ``"0/2"``）。

This module converts genotype strings (6-digit allele codes such as
``"001002"``, or haplotype / nucleotide notation such as ``"A/C"``)
into:

- biallelic markers: dosage ``GT_BIN`` (number of alternate alleles);
- multiallelic markers: VCF index notation ``GT_VCF`` (e.g. ``"0/2"``).

参考等位基因为该标记在全数据集中出现次数最多的等位基因，
其余等位基因按频率降序编号（频率相同按编码排序）。

The reference allele is the most frequent allele of the marker across
the whole dataset; the other alleles are numbered by decreasing
frequency (ties broken by allele code).
"""

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from tidy_bayescan.filters import MISSING_GT, MISSING_VCF


def split_alleles(gt: pd.Series):
    """
    将基因型拆分为两个等位基因

    Split genotypes into their two alleles.

    Returns
    -------
    a1, a2 : pandas.Series
        两个等位基因。 The two alleles.

    missing : pandas.Series of bool
        缺失基因型掩码。 Missing genotype mask.
    """

    gt = gt.astype(str)
    has_slash = gt.str.contains("/", regex=False)
    parts = gt.str.split("/", n=1)
    a1 = gt.str[:3].where(~has_slash, parts.str[0])
    a2 = gt.str[3:6].where(~has_slash, parts.str[1])
    missing = (
        gt.isin([MISSING_GT, MISSING_VCF, "nan", "None", ""])
        | (has_slash & gt.str.contains(".", regex=False))
    )
    return a1, a2, missing


def _recode_chunk(chunk: pd.DataFrame, source: str, biallelic: bool) -> pd.Series:
    """单个标记分片的重编码（可并行） / Re-code one chunk of markers."""
    a1, a2, missing = split_alleles(chunk[source])
    typed = ~missing

    obs = pd.DataFrame({
        "MARKERS": pd.concat([chunk.loc[typed, "MARKERS"], chunk.loc[typed, "MARKERS"]], ignore_index=True),
        "ALLELES": pd.concat([a1[typed], a2[typed]], ignore_index=True),
    })
    counts = obs.groupby(["MARKERS", "ALLELES"]).size().rename("n").reset_index()
    counts = counts.sort_values(["MARKERS", "n", "ALLELES"], ascending=[True, False, True], kind="mergesort")
    counts["RANK"] = counts.groupby("MARKERS").cumcount()
    rank = dict(zip(zip(counts["MARKERS"], counts["ALLELES"]), counts["RANK"]))

    markers = chunk["MARKERS"].to_numpy()
    r1 = np.array([rank.get((m, a), -1) for m, a in zip(markers, a1.to_numpy())])
    r2 = np.array([rank.get((m, a), -1) for m, a in zip(markers, a2.to_numpy())])
    missing = missing.to_numpy()

    if biallelic:
        dosage = (r1 != 0).astype(float) + (r2 != 0).astype(float)
        dosage[missing] = np.nan
        return pd.Series(dosage, index=chunk.index, name="GT_BIN")

    vcf = np.where(missing, MISSING_VCF, [f"{x}/{y}" for x, y in zip(r1, r2)])
    return pd.Series(vcf, index=chunk.index, name="GT_VCF")


def change_alleles(
        data: pd.DataFrame,
        biallelic: bool = True,
        parallel_core: int = 1,
        verbose: bool = True
) -> pd.DataFrame:
    """
    将基因型重编码为 ``GT_BIN``（二等位）或 ``GT_VCF``（多等位）

    Re-code genotypes into ``GT_BIN`` (biallelic) or ``GT_VCF``
    (multiallelic).

    Parameters
    ----------
    data : pandas.DataFrame
        tidy 表。二等位模式读取 ``GT``（无则 ``GT_VCF``）；
        多等位模式读取 ``GT_HAPLO``（无则 ``GT_VCF_NUC``，再无则 ``GT``）。

        Tidy data. The biallelic mode reads ``GT`` (or ``GT_VCF``); the
        multiallelic mode reads ``GT_HAPLO`` (or ``GT_VCF_NUC``, then
        ``GT``).

    biallelic : bool, default=True
        输出 ``GT_BIN`` 还是 ``GT_VCF``。
        Whether to produce ``GT_BIN`` or ``GT_VCF``.

    parallel_core : int, default=1
        并行任务数。标记被均分为 ``parallel_core`` 个分片，
        由 Joblib 并行处理；为 1 时串行执行。

        Number of parallel jobs. Markers are split into
        ``parallel_core`` chunks processed with Joblib; 1 runs serially.

    verbose : bool, default=True
        是否打印进度信息。 Whether to print progress messages.

    Returns
    -------
    pandas.DataFrame
        增加（或覆盖）了 ``GT_BIN`` / ``GT_VCF`` 列的副本。

        Copy of ``data`` with the ``GT_BIN`` / ``GT_VCF`` column added
        or replaced.

    Notes
    -----
    - 同一标记的所有记录总在同一分片内，
      因此参考等位基因总是基于全数据集的频率确定。

      All records of a marker always land in the same chunk, so the
      reference allele is chosen from dataset-wide frequencies.
    """

    if biallelic:
        candidates = ("GT", "GT_VCF", "GT_VCF_NUC")
    else:
        candidates = ("GT_HAPLO", "GT_VCF_NUC", "GT")
    source = next((c for c in candidates if c in data.columns), None)
    if source is None:
        raise KeyError(f"No genotype column to re-code (expected one of {candidates}).")

    data = data.copy()
    markers = data["MARKERS"].unique()
    n_chunks = max(1, min(int(parallel_core), len(markers)))
    chunk_ids = dict(zip(markers, np.arange(len(markers)) % n_chunks))
    groups = [g for _, g in data[["MARKERS", source]].groupby(data["MARKERS"].map(chunk_ids), sort=True)]

    if verbose:
        target = "GT_BIN" if biallelic else "GT_VCF"
        print(f"[INFO] Re-coding {len(markers)} markers from {source} to {target} (jobs={n_chunks})")

    if n_chunks > 1:
        parts = Parallel(n_jobs=n_chunks)(
            delayed(_recode_chunk)(g, source, biallelic) for g in groups
        )
    else:
        parts = [_recode_chunk(g, source, biallelic) for g in tqdm(groups, desc="Re-coding alleles", ncols=100, disable=not verbose)]

    recoded = pd.concat(parts).reindex(data.index)
    data[recoded.name] = recoded
    return data
