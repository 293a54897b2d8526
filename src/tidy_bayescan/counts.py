"""
counts.py
=========

等位基因计数聚合模块（Aggregation Layer）
Per-marker, per-population allele counts for the BayeScan format.

Functions
---------
biallelic_counts
    由剂量编码 ``GT_BIN`` 计算每个 (标记, 群体) 的参考 / 替代等位基因计数。
    Reference / alternate allele counts per (marker, population) from
    the ``GT_BIN`` dosage.

multiallelic_counts
    由 ``GT_VCF`` 计算每个 (标记, 群体) 的各等位基因计数向量。
    Per-allele count vectors per (marker, population) from ``GT_VCF``.

Description
-----------
两种模式都先构造完整的键集合（所有标记 × 所有群体，
多等位模式再 × 该标记的全局等位基因集合），
再把观测到的计数左连接上去并以 0 填充，
确保某群体中未观测到的标记或等位基因仍以 0 出现，
否则 BayeScan 会错误解析列数。

Both modes build the complete key set first (all markers × all
populations, times the marker's global allele set in multiallelic
mode), then left-join the observed counts with a zero default, so that
markers or alleles never observed in a population still appear as
zeros; BayeScan misreads the column counts otherwise.
"""

from typing import List

import pandas as pd


def allele_sort_key(allele) -> tuple:
    """数字等位基因按数值排序，其余按字符串 / Numeric alleles sort numerically."""
    allele = str(allele)
    if allele.isdigit():
        return 0, int(allele), allele
    return 1, 0, allele


def biallelic_counts(data: pd.DataFrame) -> pd.DataFrame:
    """
    二等位计数

    Biallelic allele counts.

    对每个 (群体, 标记)，排除缺失剂量后：
    ``REF = 2 × n(0) + n(1)``，``ALT = 2 × n(2) + n(1)``，
    ``GENE_N = REF + ALT``，``ALLELE_N = 2``。

    For each (population, marker), excluding missing dosages:
    ``REF = 2 × n(0) + n(1)``, ``ALT = 2 × n(2) + n(1)``,
    ``GENE_N = REF + ALT`` and ``ALLELE_N = 2``.

    Parameters
    ----------
    data : pandas.DataFrame
        需要 ``BAYESCAN_POP``、``BAYESCAN_MARKERS``、``GT_BIN`` 列。

        Needs ``BAYESCAN_POP``, ``BAYESCAN_MARKERS`` and ``GT_BIN``.

    Returns
    -------
    pandas.DataFrame
        列为 ``BAYESCAN_POP``、``BAYESCAN_MARKERS``、``GENE_N``、
        ``ALLELE_N``、``REF``、``ALT``。群体按其在输入中首次出现的顺序，
        群体内标记按编号升序。

        Columns ``BAYESCAN_POP``, ``BAYESCAN_MARKERS``, ``GENE_N``,
        ``ALLELE_N``, ``REF``, ``ALT``. Populations follow their order
        of first appearance in the input, markers are ascending within
        a population.
    """

    pops = list(pd.unique(data["BAYESCAN_POP"]))
    markers = sorted(pd.unique(data["BAYESCAN_MARKERS"]))

    obs = data.loc[data["GT_BIN"].notna(), ["BAYESCAN_POP", "BAYESCAN_MARKERS", "GT_BIN"]]
    obs = obs.assign(
        N0=(obs["GT_BIN"] == 0).astype(int),
        N1=(obs["GT_BIN"] == 1).astype(int),
        N2=(obs["GT_BIN"] == 2).astype(int),
    )
    observed = obs.groupby(["BAYESCAN_POP", "BAYESCAN_MARKERS"])[["N0", "N1", "N2"]].sum()

    full = pd.MultiIndex.from_product([pops, markers], names=["BAYESCAN_POP", "BAYESCAN_MARKERS"])
    counts = observed.reindex(full, fill_value=0).reset_index()

    counts["REF"] = counts["N0"] * 2 + counts["N1"]
    counts["ALT"] = counts["N2"] * 2 + counts["N1"]
    counts["GENE_N"] = counts["REF"] + counts["ALT"]
    counts["ALLELE_N"] = 2
    return counts[["BAYESCAN_POP", "BAYESCAN_MARKERS", "GENE_N", "ALLELE_N", "REF", "ALT"]]


def multiallelic_counts(data: pd.DataFrame) -> pd.DataFrame:
    """
    多等位计数

    Multiallelic allele counts.

    Parameters
    ----------
    data : pandas.DataFrame
        需要 ``BAYESCAN_POP``、``BAYESCAN_MARKERS``、``GT_VCF`` 列，
        缺失基因型为 ``"./."``。

        Needs ``BAYESCAN_POP``, ``BAYESCAN_MARKERS`` and ``GT_VCF``;
        missing genotypes are ``"./."``.

    Returns
    -------
    pandas.DataFrame
        每个 (标记, 群体) 一行，列为 ``BAYESCAN_MARKERS``、``BAYESCAN_POP``、
        ``GENE_N``、``ALLELE_N``（该标记的全局等位基因数）、
        ``COUNTS``（按全局等位基因顺序排列的计数列表）。
        按 (标记, 群体) 升序排列。

        One row per (marker, population) with ``BAYESCAN_MARKERS``,
        ``BAYESCAN_POP``, ``GENE_N``, ``ALLELE_N`` (global allele count
        of the marker) and ``COUNTS`` (list of counts in the global
        allele order), sorted by (marker, population).

    Notes
    -----
    - 全局等位基因集合在所有群体上确定，
      因此 ``COUNTS`` 的第 i 个位置在所有群体中都指向同一个等位基因。

      The global allele set is taken across all populations, so
      position i of ``COUNTS`` refers to the same allele in every
      population.
    """

    pops = sorted(pd.unique(data["BAYESCAN_POP"]))

    typed = data.loc[
        data["GT_VCF"].notna() & ~data["GT_VCF"].astype(str).str.contains(".", regex=False),
        ["BAYESCAN_MARKERS", "BAYESCAN_POP", "GT_VCF"],
    ]
    if typed.empty:
        return pd.DataFrame(columns=["BAYESCAN_MARKERS", "BAYESCAN_POP", "GENE_N", "ALLELE_N", "COUNTS"])
    if not typed["GT_VCF"].astype(str).str.contains("/", regex=False).all():
        raise ValueError("GT_VCF genotypes must use the 'a/b' notation.")

    split = typed["GT_VCF"].astype(str).str.split("/", n=1, expand=True)
    keys = typed[["BAYESCAN_MARKERS", "BAYESCAN_POP"]]
    alleles = pd.concat([
        keys.assign(ALLELES=split[0].to_numpy()),
        keys.assign(ALLELES=split[1].to_numpy()),
    ], ignore_index=True)

    global_alleles = {
        marker: sorted(pd.unique(group), key=allele_sort_key)
        for marker, group in alleles.groupby("BAYESCAN_MARKERS")["ALLELES"]
    }
    observed = alleles.groupby(["BAYESCAN_MARKERS", "BAYESCAN_POP", "ALLELES"]).size()

    # 完整键集合：标记 × 群体 × 全局等位基因
    full = pd.MultiIndex.from_tuples(
        [(m, p, a) for m in sorted(global_alleles) for p in pops for a in global_alleles[m]],
        names=["BAYESCAN_MARKERS", "BAYESCAN_POP", "ALLELES"],
    )
    tally = observed.reindex(full, fill_value=0)

    rows: List[dict] = []
    for (marker, pop), counts in tally.groupby(level=["BAYESCAN_MARKERS", "BAYESCAN_POP"], sort=True):
        counts = [int(c) for c in counts.to_numpy()]
        rows.append({
            "BAYESCAN_MARKERS": marker,
            "BAYESCAN_POP": pop,
            "GENE_N": sum(counts),
            "ALLELE_N": len(global_alleles[marker]),
            "COUNTS": counts,
        })
    return pd.DataFrame(rows)
