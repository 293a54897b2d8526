"""
filters.py
==========

数据过滤模块（Filtering Layer）
Filtering utilities applied to tidy genotype data before conversion.

本模块实现 tidy 数据进入 BayeScan 转换或 β 估计之前的全部预处理步骤：
缺失标记检测、群体选择、共有标记保留、单态标记剔除、
短距离连锁不平衡修剪以及黑白名单过滤。

This module implements every pre-processing step applied to tidy data
before the BayeScan conversion or the beta estimation: all-missing
marker detection, population selection, common-marker retention,
monomorphic-marker removal, short-distance linkage pruning, and
blacklists / whitelists.

Functions
---------
missing_genotypes
    返回缺失基因型的布尔掩码。
    Boolean mask of missing genotypes.

allele_observations
    将基因型拆分为长格式的等位基因观测。
    Split genotypes into long-format allele observations.

detect_all_missing
    剔除所有基因型均缺失的标记。
    Remove markers whose genotypes are all missing.

keep_common_markers
    仅保留在所有群体中均被分型的标记。
    Keep markers genotyped in every population.

discard_monomorphic_markers
    剔除全数据集中只有一个等位基因的标记。
    Remove markers with a single observed allele.

prune_snp_ld
    短距离连锁不平衡修剪。
    Short-distance linkage disequilibrium pruning.

select_populations, change_pop_names, apply_strata,
blacklist_individuals, blacklist_genotypes, keep_whitelisted_markers, max_markers
    群体与样本层面的筛选与重命名。
    Population and sample level selection and relabeling.

tidy_genomic_data
    按固定顺序串联上述步骤的导入链。
    Ingestion chain running the steps above in a fixed order.

Description
-----------
每个过滤函数都接收 tidy 表并返回过滤后的 tidy 表（部分附带诊断信息），
过滤后为空时抛出 ``EmptyResultError``，而不是静默返回空表。

Every filter takes tidy data and returns filtered tidy data (some with
diagnostics). An empty result raises ``EmptyResultError`` instead of
silently returning an empty table.
"""

from pathlib import Path
from typing import Tuple

import numpy as np
import pandas as pd

from tidy_bayescan.config import SNP_LD_STRATEGIES
from tidy_bayescan.errors import EmptyResultError
from tidy_bayescan.io import load_strata, read_input

MISSING_GT = "000000"
MISSING_VCF = "./."
_DOSAGE_ALLELES = {0: ("0", "0"), 1: ("0", "1"), 2: ("1", "1")}


def missing_genotypes(data: pd.DataFrame) -> pd.Series:
    """
    缺失基因型掩码

    Boolean mask flagging missing genotypes, read from the first
    genotype column found among ``GT``, ``GT_VCF``, ``GT_VCF_NUC`` and
    ``GT_BIN``.
    """

    if "GT" in data.columns:
        return data["GT"].isna() | (data["GT"] == MISSING_GT)
    for col in ("GT_VCF", "GT_VCF_NUC"):
        if col in data.columns:
            return data[col].isna() | data[col].astype(str).str.contains(".", regex=False)
    if "GT_BIN" in data.columns:
        return data["GT_BIN"].isna()
    raise KeyError("No genotype column found (expected GT, GT_VCF, GT_VCF_NUC or GT_BIN).")


def allele_observations(data: pd.DataFrame) -> pd.DataFrame:
    """
    将每条非缺失基因型拆分为两条等位基因观测

    Split every non-missing genotype into two allele observations.

    Parameters
    ----------
    data : pandas.DataFrame
        tidy 表。 Tidy data.

    Returns
    -------
    pandas.DataFrame
        长格式表，列为 ``MARKERS``、``POP_ID``、``INDIVIDUALS``、``ALLELES``。

        Long table with ``MARKERS``, ``POP_ID``, ``INDIVIDUALS`` and
        ``ALLELES``.

    Notes
    -----
    - ``GT`` 按 3 字符切分为两个等位基因；
      ``GT_VCF`` / ``GT_VCF_NUC`` 按 ``/`` 切分；
      仅有 ``GT_BIN`` 时用 ``"0"``/``"1"`` 表示参考/替代等位基因。

      ``GT`` is cut into two 3-character alleles; ``GT_VCF`` /
      ``GT_VCF_NUC`` are split on ``/``; with ``GT_BIN`` only, ``"0"``
      and ``"1"`` stand for the reference and alternate alleles.
    """

    keys = ["MARKERS", "POP_ID", "INDIVIDUALS"]
    obs = data.loc[~missing_genotypes(data)]

    if "GT" in obs.columns:
        a1 = obs["GT"].str[:3]
        a2 = obs["GT"].str[3:6]
    elif "GT_VCF" in obs.columns or "GT_VCF_NUC" in obs.columns:
        col = "GT_VCF" if "GT_VCF" in obs.columns else "GT_VCF_NUC"
        split = obs[col].astype(str).str.split("/", n=1, expand=True)
        a1, a2 = split[0], split[1]
    else:
        dosage = obs["GT_BIN"].astype(int)
        a1 = dosage.map(lambda d: _DOSAGE_ALLELES[d][0])
        a2 = dosage.map(lambda d: _DOSAGE_ALLELES[d][1])

    long = pd.concat([
        obs[keys].assign(ALLELES=a1.to_numpy()),
        obs[keys].assign(ALLELES=a2.to_numpy()),
    ], ignore_index=True)
    return long


def check_not_empty(data: pd.DataFrame, step: str) -> None:
    if data.empty or data["MARKERS"].nunique() == 0 or data["INDIVIDUALS"].nunique() == 0:
        raise EmptyResultError(f"No markers or individuals left after {step}.")


def _as_list(values, column: str) -> list:
    """路径、DataFrame、Series 或列表统一转为列表 / Coerce to a plain list."""
    if isinstance(values, (str, Path)):
        values = pd.read_csv(values, sep="\t", dtype=str)
    if isinstance(values, pd.DataFrame):
        if column not in values.columns:
            raise KeyError(f"Column not found: {column}")
        values = values[column]
    return [str(v).strip() for v in values]


def detect_all_missing(data: pd.DataFrame, verbose: bool = False) -> Tuple[pd.DataFrame, bool]:
    """
    剔除所有基因型都缺失的标记

    Remove markers whose genotypes are all missing.

    Returns
    -------
    data : pandas.DataFrame
        不含全缺失标记的 tidy 表。 Tidy data without all-missing markers.

    marker_problem : bool
        是否发现并剔除了全缺失标记。 Whether such markers were found.
    """

    typed = data.loc[~missing_genotypes(data), "MARKERS"].unique()
    keep = data["MARKERS"].isin(typed)
    n_problem = data.loc[~keep, "MARKERS"].nunique()
    if n_problem == 0:
        return data, False

    if verbose:
        print(f"[WARN] Removed {n_problem} marker(s) with all genotypes missing")
    return data.loc[keep].reset_index(drop=True), True


def keep_common_markers(data: pd.DataFrame, verbose: bool = True) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    仅保留在所有群体中均有非缺失基因型的标记

    Keep the markers genotyped in every population.

    Returns
    -------
    data : pandas.DataFrame
        过滤后的 tidy 表。 Filtered tidy data.

    blacklist : pandas.DataFrame
        被剔除标记的单列表（``MARKERS``）。 Removed markers.
    """

    n_pop = data["POP_ID"].nunique()
    typed = data.loc[~missing_genotypes(data)]
    pops_per_marker = typed.groupby("MARKERS")["POP_ID"].nunique()
    common = pops_per_marker.index[pops_per_marker == n_pop]

    keep = data["MARKERS"].isin(common)
    blacklist = pd.DataFrame({"MARKERS": sorted(data.loc[~keep, "MARKERS"].unique())})

    if verbose:
        total = data["MARKERS"].nunique()
        print(f"[INFO] Keeping common markers: {len(common)}/{total} markers genotyped in all {n_pop} populations")
    return data.loc[keep].reset_index(drop=True), blacklist


def discard_monomorphic_markers(data: pd.DataFrame, verbose: bool = True) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    剔除单态标记（整个数据集中只观察到一个等位基因）

    Remove monomorphic markers (a single allele observed across the
    whole dataset).

    Returns
    -------
    data : pandas.DataFrame
        过滤后的 tidy 表。 Filtered tidy data.

    blacklist : pandas.DataFrame
        被剔除标记的单列表（``MARKERS``）。 Removed markers.
    """

    n_alleles = allele_observations(data).groupby("MARKERS")["ALLELES"].nunique()
    mono = n_alleles.index[n_alleles < 2]

    keep = ~data["MARKERS"].isin(mono)
    blacklist = pd.DataFrame({"MARKERS": sorted(mono)})

    if verbose:
        print(f"[INFO] Removing monomorphic markers: {len(mono)} discarded, "
              f"{data.loc[keep, 'MARKERS'].nunique()} kept")
    return data.loc[keep].reset_index(drop=True), blacklist


def prune_snp_ld(
        data: pd.DataFrame,
        snp_ld,
        random_state: int | None = None,
        verbose: bool = True
) -> pd.DataFrame:
    """
    短距离连锁不平衡修剪

    Short-distance linkage disequilibrium pruning.

    Parameters
    ----------
    data : pandas.DataFrame
        tidy 表，需要 ``POS`` 以及 ``LOCUS`` 或 ``CHROM`` 列。

        Tidy data with ``POS`` and ``LOCUS`` or ``CHROM``.

    snp_ld : str or int
        - 字符串策略（``"first"``、``"last"``、``"middle"``、``"random"``）：
          每个 ``LOCUS`` 仅保留一个 SNP；
        - 整数：同一 ``LOCUS``（无则 ``CHROM``）内保留彼此至少相距
          该碱基数的 SNP（按位置从前往后贪心选择）。

        - a strategy (``"first"``, ``"last"``, ``"middle"``,
          ``"random"``) keeps one SNP per ``LOCUS``;
        - an integer keeps SNPs at least that many bp apart within each
          ``LOCUS`` (``CHROM`` when there is no ``LOCUS``), chosen
          greedily from the first position.

    random_state : int or None
        ``"random"`` 策略的随机种子。 Seed of the ``"random"`` strategy.

    Returns
    -------
    pandas.DataFrame
        修剪后的 tidy 表。缺少所需列时原样返回。

        Pruned tidy data; returned unchanged when the required columns
        are absent.
    """

    group_col = "LOCUS" if "LOCUS" in data.columns else ("CHROM" if "CHROM" in data.columns else None)
    if group_col is None or "POS" not in data.columns:
        if verbose:
            print("[WARN] snp_ld requires POS and LOCUS (or CHROM) columns; pruning skipped.")
        return data

    snps = (data[[group_col, "MARKERS", "POS"]]
            .drop_duplicates("MARKERS")
            .sort_values([group_col, "POS"], kind="mergesort"))

    if isinstance(snp_ld, str):
        if snp_ld not in SNP_LD_STRATEGIES:
            raise ValueError(f"Unknown snp_ld strategy: {snp_ld}")
        if group_col != "LOCUS":
            if verbose:
                print("[WARN] snp_ld strategies need a LOCUS column; pruning skipped.")
            return data
        rng = np.random.default_rng(random_state)

        def _pick(group: pd.DataFrame) -> str:
            if snp_ld == "first":
                return group["MARKERS"].iat[0]
            if snp_ld == "last":
                return group["MARKERS"].iat[-1]
            if snp_ld == "middle":
                return group["MARKERS"].iat[(len(group) - 1) // 2]
            return group["MARKERS"].iat[rng.integers(len(group))]

        kept = [_pick(group) for _, group in snps.groupby(group_col, sort=False)]
    else:
        kept = []
        for _, group in snps.groupby(group_col, sort=False):
            last_pos = None
            for marker, pos in zip(group["MARKERS"], group["POS"]):
                if last_pos is None or pos - last_pos >= snp_ld:
                    kept.append(marker)
                    last_pos = pos

    out = data.loc[data["MARKERS"].isin(kept)].reset_index(drop=True)
    if verbose:
        print(f"[INFO] Short distance LD pruning (snp_ld={snp_ld}): "
              f"{len(kept)}/{len(snps)} markers kept")
    return out


def select_populations(data: pd.DataFrame, pop_select, verbose: bool = True) -> pd.DataFrame:
    """保留指定群体，结果为空时抛出 ``EmptyResultError``。"""
    pop_select = [str(p) for p in pop_select]
    out = data.loc[data["POP_ID"].astype(str).isin(pop_select)].reset_index(drop=True)
    if verbose:
        print(f"[INFO] pop_select: {', '.join(pop_select)} ({len(out)}/{len(data)} rows kept)")
    check_not_empty(out, "population selection")
    return out


def change_pop_names(data: pd.DataFrame, pop_levels=None, pop_labels=None) -> pd.DataFrame:
    """
    按 ``pop_levels`` → ``pop_labels`` 重命名群体

    Relabel populations, ``pop_levels[i]`` becoming ``pop_labels[i]``.
    Several levels may share one label (population pooling).
    """

    if pop_levels is None:
        return data
    mapping = dict(zip([str(p) for p in pop_levels], [str(p) for p in pop_labels]))
    data = data.copy()
    data["POP_ID"] = data["POP_ID"].astype(str).map(lambda p: mapping.get(p, p))
    return data


def apply_strata(data: pd.DataFrame, strata, verbose: bool = True) -> pd.DataFrame:
    """
    用分层表覆盖 ``POP_ID``，分层表之外的个体被移除

    Overwrite ``POP_ID`` from a strata table; individuals absent from the
    strata are dropped.
    """

    if isinstance(strata, (str, Path)):
        strata = load_strata(strata)
    mapping = dict(zip(strata["INDIVIDUALS"].astype(str), strata["STRATA"].astype(str)))
    keep = data["INDIVIDUALS"].isin(mapping.keys())
    out = data.loc[keep].copy()
    out["POP_ID"] = out["INDIVIDUALS"].map(mapping)
    if verbose:
        print(f"[INFO] Strata applied: {out['INDIVIDUALS'].nunique()} individuals in "
              f"{out['POP_ID'].nunique()} populations")
    check_not_empty(out, "applying strata")
    return out.reset_index(drop=True)


def blacklist_individuals(data: pd.DataFrame, blacklist_id, verbose: bool = True) -> pd.DataFrame:
    """移除黑名单中的个体 / Drop blacklisted individuals."""
    ids = set(_as_list(blacklist_id, "INDIVIDUALS"))
    keep = ~data["INDIVIDUALS"].isin(ids)
    if verbose:
        print(f"[INFO] Blacklisted individuals removed: {data.loc[~keep, 'INDIVIDUALS'].nunique()}")
    out = data.loc[keep].reset_index(drop=True)
    check_not_empty(out, "removing blacklisted individuals")
    return out


def blacklist_genotypes(data: pd.DataFrame, blacklist_genotype, verbose: bool = True) -> pd.DataFrame:
    """
    将黑名单中的 (标记, 个体) 基因型置为缺失

    Set blacklisted ``(MARKERS, INDIVIDUALS)`` genotypes to missing.
    """

    if isinstance(blacklist_genotype, (str, Path)):
        blacklist_genotype = pd.read_csv(blacklist_genotype, sep="\t", dtype=str)
    pairs = set(zip(blacklist_genotype["MARKERS"].astype(str), blacklist_genotype["INDIVIDUALS"].astype(str)))
    hit = pd.Series(
        [(m, i) in pairs for m, i in zip(data["MARKERS"], data["INDIVIDUALS"])],
        index=data.index,
    )

    data = data.copy()
    if "GT" in data.columns:
        data.loc[hit, "GT"] = MISSING_GT
    for col in ("GT_VCF", "GT_VCF_NUC"):
        if col in data.columns:
            data.loc[hit, col] = MISSING_VCF
    if "GT_BIN" in data.columns:
        data["GT_BIN"] = data["GT_BIN"].astype(float)
        data.loc[hit, "GT_BIN"] = np.nan
    if verbose:
        print(f"[INFO] Blacklisted genotypes erased: {int(hit.sum())}")
    return data


def keep_whitelisted_markers(data: pd.DataFrame, whitelist, verbose: bool = True) -> pd.DataFrame:
    """仅保留白名单中的标记 / Keep whitelisted markers only."""
    markers = set(_as_list(whitelist, "MARKERS"))
    out = data.loc[data["MARKERS"].isin(markers)].reset_index(drop=True)
    if verbose:
        print(f"[INFO] Whitelisted markers kept: {out['MARKERS'].nunique()}")
    check_not_empty(out, "applying the markers whitelist")
    return out


def max_markers(data: pd.DataFrame, max_marker: int, random_state: int | None = None,
                verbose: bool = True) -> pd.DataFrame:
    """随机保留至多 ``max_marker`` 个标记 / Randomly keep at most ``max_marker`` markers."""
    markers = data["MARKERS"].unique()
    if len(markers) <= max_marker:
        return data
    rng = np.random.default_rng(random_state)
    kept = rng.choice(markers, size=max_marker, replace=False)
    if verbose:
        print(f"[INFO] max_marker: {max_marker}/{len(markers)} markers randomly kept")
    return data.loc[data["MARKERS"].isin(kept)].reset_index(drop=True)


def tidy_genomic_data(
        data,
        strata=None,
        pop_select=None,
        blacklist_id=None,
        blacklist_genotype=None,
        whitelist_markers=None,
        max_marker: int | None = None,
        snp_ld=None,
        monomorphic_out: bool = True,
        common_markers: bool = True,
        random_state: int | None = None,
        verbose: bool = True
) -> pd.DataFrame:
    """
    tidy 数据导入链

    Tidy data ingestion chain.

    按以下顺序执行：读取 → 分层 → 个体黑名单 → 群体选择 → 标记白名单
    → 基因型黑名单 → 全缺失标记 → 共有标记 → 单态标记 → LD 修剪
    → 标记数上限。

    Steps, in order: read → strata → individual blacklist → population
    selection → markers whitelist → genotype blacklist → all-missing
    markers → common markers → monomorphic markers → LD pruning →
    marker cap.

    Raises
    ------
    MissingInputError
        未提供数据。 No data supplied.

    EmptyResultError
        任一步骤后没有剩余的标记或个体。
        No marker or individual left after a step.
    """

    data = read_input(data)
    if strata is not None:
        data = apply_strata(data, strata, verbose=verbose)
    if blacklist_id is not None:
        data = blacklist_individuals(data, blacklist_id, verbose=verbose)
    if pop_select is not None:
        data = select_populations(data, pop_select, verbose=verbose)
    if whitelist_markers is not None:
        data = keep_whitelisted_markers(data, whitelist_markers, verbose=verbose)
    if blacklist_genotype is not None:
        data = blacklist_genotypes(data, blacklist_genotype, verbose=verbose)

    data, _ = detect_all_missing(data, verbose=verbose)
    check_not_empty(data, "removing all-missing markers")

    if common_markers:
        data, _ = keep_common_markers(data, verbose=verbose)
        check_not_empty(data, "keeping common markers")
    if monomorphic_out:
        data, _ = discard_monomorphic_markers(data, verbose=verbose)
        check_not_empty(data, "removing monomorphic markers")
    if snp_ld is not None:
        data = prune_snp_ld(data, snp_ld, random_state=random_state, verbose=verbose)
    if max_marker is not None:
        data = max_markers(data, max_marker, random_state=random_state, verbose=verbose)

    check_not_empty(data, "filtering")
    if verbose:
        print(f"[OK] Tidy data ready: {data['MARKERS'].nunique()} markers, "
              f"{data['INDIVIDUALS'].nunique()} individuals, {data['POP_ID'].nunique()} populations")
    return data
