"""
betas.py
========

β 估计模块（Statistics Layer）
Population-specific beta estimation from within- and between-population
gene diversities.

本模块计算：

- ``HW``：每个 (标记, 群体) 的群体内基因多样性（期望杂合度），
  经有限样本校正 ``NN / (NN - 1)``；
- ``HB``：每个标记的群体间基因多样性，
  对群体两两组合（每个无序组合只计一次）求频率乘积之和；
- ``BETAI``：每个群体在所有标记上平均的 β，
  ``1 - ΣHW / ΣHB``，缺失值不计入两个求和。

This module computes:

- ``HW``: within-population gene diversity (expected heterozygosity)
  per (marker, population), with the finite-sample correction
  ``NN / (NN - 1)``;
- ``HB``: between-population gene diversity per marker, summing
  frequency products over unordered population pairs (each pair once);
- ``BETAI``: per-population beta averaged over markers,
  ``1 - ΣHW / ΣHB``, missing values excluded from both sums.

Functions
---------
allele_counts_from_gt
    适配 6 位等位基因编码 ``GT``。
    Adapter for the 6-character ``GT`` allele codes.

allele_counts_from_vcf
    适配 VCF 表示 ``GT_VCF``（如 ``"0/1"``）。
    Adapter for the ``GT_VCF`` notation (e.g. ``"0/1"``).

gene_diversity
    两个适配器共享的统计核心。
    Statistics core shared by both adapters.

betas_estimator
    主入口：导入、过滤并估计 β。
    Main entry point: ingest, filter and estimate betas.

Description
-----------
两种基因型表示先被转换为同一种长格式等位基因计数表
（``MARKERS``、``POP_ID``、``ALLELES``、``n``），
再交由同一个统计核心计算，保证两条路径的数值定义一致。

Both genotype representations are first turned into the same long
allele-count table (``MARKERS``, ``POP_ID``, ``ALLELES``, ``n``) and then
handed to one statistics core, so both paths share the same numeric
definitions.

数值退化（``NN <= 1`` 或 ``N_POP <= 1``）不会抛出异常，
而是以 NaN 表示并从汇总求和中排除。

Numeric degeneracies (``NN <= 1`` or ``N_POP <= 1``) never raise; they
are recorded as NaN and excluded from the aggregate sums.

References
----------
Foll, M and OE Gaggiotti (2008) A genome scan method to identify
selected loci appropriate for both dominant and codominant markers:
A Bayesian perspective. Genetics 180: 977-993.
"""

import itertools
import time
from dataclasses import dataclass

import numpy as np
import pandas as pd

from tidy_bayescan.config import BetasConfig
from tidy_bayescan.errors import MissingInputError
from tidy_bayescan.filters import (
    MISSING_GT,
    allele_observations,
    change_pop_names,
    tidy_genomic_data,
)


@dataclass
class BetasResult:
    """
    β 估计结果

    Attributes
    ----------
    betaiovl : pandas.DataFrame
        每个群体的 β（``POP_ID``、``BETAI``）。
        Beta per population, averaged over loci.

    hw : pandas.DataFrame
        群体内基因多样性（``MARKERS``、``POP_ID``、``HW``）。
        Within-population gene diversities.

    hb : pandas.DataFrame
        群体间基因多样性（``MARKERS``、``HB``）。
        Between-population gene diversities.
    """

    betaiovl: pd.DataFrame
    hw: pd.DataFrame
    hb: pd.DataFrame


def _tally(alleles: pd.DataFrame) -> pd.DataFrame:
    """
    等位基因计数并按 群体 × (标记, 等位基因) 补零

    Count alleles and zero-fill over populations × observed
    (marker, allele) pairs.
    """

    observed = alleles.groupby(["MARKERS", "POP_ID", "ALLELES"]).size()
    pops = sorted(alleles["POP_ID"].unique())
    pairs = alleles[["MARKERS", "ALLELES"]].drop_duplicates().sort_values(["MARKERS", "ALLELES"])
    full = pd.MultiIndex.from_tuples(
        [(m, p, a) for m, a in zip(pairs["MARKERS"], pairs["ALLELES"]) for p in pops],
        names=["MARKERS", "POP_ID", "ALLELES"],
    )
    return observed.reindex(full, fill_value=0).rename("n").reset_index()


def allele_counts_from_gt(data: pd.DataFrame) -> pd.DataFrame:
    """
    ``GT`` 适配器：``"001002"`` → 等位基因 ``"001"``、``"002"``

    Adapter for 6-character ``GT`` codes; ``"000000"`` is missing.
    """

    typed = data.loc[data["GT"] != MISSING_GT, ["MARKERS", "POP_ID", "GT"]]
    alleles = pd.concat([
        typed[["MARKERS", "POP_ID"]].assign(ALLELES=typed["GT"].str[:3].to_numpy()),
        typed[["MARKERS", "POP_ID"]].assign(ALLELES=typed["GT"].str[3:6].to_numpy()),
    ], ignore_index=True)
    return _tally(alleles)


def allele_counts_from_vcf(data: pd.DataFrame) -> pd.DataFrame:
    """
    ``GT_VCF`` 适配器：``"0/1"`` → 等位基因 ``"0"``、``"1"``

    Adapter for the ``GT_VCF`` genotype notation; ``"./."`` (or any
    genotype holding a ``.``) is missing. Phased ``|`` separators are
    read like ``/``.
    """

    gt = data["GT_VCF"].astype(str).str.replace("|", "/", regex=False)
    typed = gt.notna() & ~gt.str.contains(".", regex=False) & gt.str.contains("/", regex=False)
    split = gt[typed].str.split("/", n=1, expand=True)
    keys = data.loc[typed, ["MARKERS", "POP_ID"]]
    alleles = pd.concat([
        keys.assign(ALLELES=split[0].to_numpy()),
        keys.assign(ALLELES=split[1].to_numpy()),
    ], ignore_index=True)
    return _tally(alleles)


def pairwise_product_sum(values) -> float:
    """无序两两组合乘积之和（每对只计一次） / Sum of products over unordered pairs."""
    values = [v for v in values if not pd.isna(v)]
    return float(sum(a * b for a, b in itertools.combinations(values, 2)))


def gene_diversity(counts: pd.DataFrame) -> BetasResult:
    """
    由等位基因计数表计算 HW、HB 与 BETAI

    Compute HW, HB and BETAI from a long allele-count table.

    Parameters
    ----------
    counts : pandas.DataFrame
        列为 ``MARKERS``、``POP_ID``、``ALLELES``、``n``，
        已在 群体 × (标记, 等位基因) 上补零。

        Columns ``MARKERS``, ``POP_ID``, ``ALLELES`` and ``n``,
        zero-filled over populations × (marker, allele).

    Returns
    -------
    BetasResult

    Notes
    -----
    - ``NN`` 为 (标记, 群体) 的等位基因观测总数（= 2 × 基因型数）。
      ``NN = 0`` 的群体视为该标记无数据，不参与 ``HW``、``HB`` 与 ``BETAI``。

      ``NN`` is the number of allele observations of a (marker,
      population), i.e. twice its genotype count. Populations with
      ``NN = 0`` have no data for the marker and take no part in
      ``HW``, ``HB`` or ``BETAI``.

    - ``HW = NN / (NN - 1) × (1 - Σ p²)``，``NN <= 1`` 时为 NaN。

      ``HW = NN / (NN - 1) × (1 - Σ p²)``, NaN when ``NN <= 1``.

    - ``HB = 1 - 2 × Σ_allele Σ_{i<j} p_i p_j / (N_POP × (N_POP - 1))``，
      ``N_POP <= 1`` 时为 NaN。

      ``HB = 1 - 2 × Σ_allele Σ_{i<j} p_i p_j / (N_POP × (N_POP - 1))``,
      NaN when ``N_POP <= 1``.
    """

    counts = counts.copy()
    counts["NN"] = counts.groupby(["MARKERS", "POP_ID"])["n"].transform("sum")
    counts = counts.loc[counts["NN"] > 0].copy()
    counts["FREQ"] = counts["n"] / counts["NN"]

    per_pop = counts.groupby(["MARKERS", "POP_ID"]).agg(
        NN=("NN", "first"),
        HOM=("FREQ", lambda f: float(np.sum(np.square(f)))),
    ).reset_index()
    nn = per_pop["NN"].astype(float)
    with np.errstate(divide="ignore", invalid="ignore"):
        hw = (nn / (nn - 1)) * (1 - per_pop["HOM"])
    per_pop["HW"] = hw.where(nn > 1)

    n_pop = per_pop.groupby("MARKERS")["POP_ID"].nunique()
    between = counts.groupby(["MARKERS", "ALLELES"])["FREQ"].agg(pairwise_product_sum)
    hb_raw = between.groupby(level="MARKERS").sum() * 2
    n_pop = n_pop.reindex(hb_raw.index).astype(float)
    with np.errstate(divide="ignore", invalid="ignore"):
        n_pop_c = 1 / (n_pop * (n_pop - 1))
    hb = (1 - n_pop_c * hb_raw).where(n_pop > 1)
    hb_table = pd.DataFrame({"MARKERS": hb.index, "HB": hb.to_numpy()}).reset_index(drop=True)

    joined = per_pop[["MARKERS", "POP_ID", "HW"]].merge(hb_table, on="MARKERS", how="left")
    sums = joined.groupby("POP_ID").agg(
        SUM_HW=("HW", lambda x: x.sum(min_count=1)),
        SUM_HB=("HB", lambda x: x.sum(min_count=1)),
    )
    betai = 1 - sums["SUM_HW"] / sums["SUM_HB"].where(sums["SUM_HB"] != 0)
    betaiovl = pd.DataFrame({"POP_ID": sums.index, "BETAI": betai.to_numpy()})

    return BetasResult(
        betaiovl=betaiovl.sort_values("POP_ID").reset_index(drop=True),
        hw=per_pop[["MARKERS", "POP_ID", "HW"]].sort_values(["MARKERS", "POP_ID"]).reset_index(drop=True),
        hb=hb_table.sort_values("MARKERS").reset_index(drop=True),
    )


def betas_estimator(
        data,
        strata=None,
        monomorphic_out: bool = True,
        common_markers: bool = True,
        pop_levels=None,
        pop_labels=None,
        pop_select=None,
        blacklist_id=None,
        blacklist_genotype=None,
        whitelist_markers=None,
        max_marker: int | None = None,
        snp_ld=None,
        random_state: int | None = None,
        verbose: bool = False,
        config: BetasConfig | None = None
) -> BetasResult:
    """
    估计每个群体的 β

    Estimate betas per population.

    Parameters
    ----------
    data : pandas.DataFrame or str or pathlib.Path
        tidy 表或其文件路径。 Tidy data, or the path of a tidy file.

    strata : pandas.DataFrame or str or pathlib.Path, optional
        ``INDIVIDUALS`` → ``STRATA`` 分层表，覆盖 ``POP_ID``。
        Strata table overriding ``POP_ID``.

    monomorphic_out : bool, default=True
        剔除单态标记。 Remove monomorphic markers.

    common_markers : bool, default=True
        仅保留所有群体共有的标记。 Keep markers common to all populations.

    pop_levels, pop_labels : list of str, optional
        群体重命名：``pop_levels[i]`` → ``pop_labels[i]``，必须同时给出。
        Population relabeling, both lists are required together.

    pop_select : list of str or int, optional
        仅保留这些群体。 Keep these populations only.

    blacklist_id, blacklist_genotype, whitelist_markers : optional
        个体黑名单、基因型黑名单与标记白名单。
        Individual blacklist, genotype blacklist and markers whitelist.

    max_marker : int, optional
        随机保留的最大标记数。 Maximum number of randomly kept markers.

    snp_ld : str or int, optional
        短距离 LD 修剪。 Short-distance LD pruning.

    random_state : int, optional
        随机种子。 Random seed.

    verbose : bool, default=False
        是否打印结果与耗时。 Whether to print the betas and timing.

    config : BetasConfig, optional
        已校验的参数对象；给出时忽略上面的同名关键字参数。
        Validated options; overrides the keyword arguments above.

    Returns
    -------
    BetasResult
        ``betaiovl``（每群体 β）、``hw``（群体内多样性）、``hb``（群体间多样性）。

        ``betaiovl`` (beta per population), ``hw`` (within) and ``hb``
        (between) gene diversities.

    Raises
    ------
    MissingInputError
        未提供数据。 No data supplied.

    InvalidConfigurationError
        ``pop_levels`` / ``pop_labels`` 不匹配，在导入之前抛出。
        Unmatched ``pop_levels`` / ``pop_labels``; raised before ingestion.

    EmptyResultError
        过滤后没有剩余的标记或个体。 Nothing left after filtering.
    """

    if data is None:
        raise MissingInputError("Input file missing")
    if config is None:
        config = BetasConfig(
            strata=strata,
            monomorphic_out=monomorphic_out,
            common_markers=common_markers,
            pop_levels=pop_levels,
            pop_labels=pop_labels,
            pop_select=pop_select,
            blacklist_id=blacklist_id,
            blacklist_genotype=blacklist_genotype,
            whitelist_markers=whitelist_markers,
            max_marker=max_marker,
            snp_ld=snp_ld,
            random_state=random_state,
            verbose=verbose,
        )
    verbose = config.verbose
    start = time.time()

    tidy = tidy_genomic_data(
        data,
        strata=config.strata,
        pop_select=config.pop_select,
        blacklist_id=config.blacklist_id,
        blacklist_genotype=config.blacklist_genotype,
        whitelist_markers=config.whitelist_markers,
        max_marker=config.max_marker,
        snp_ld=config.snp_ld,
        monomorphic_out=config.monomorphic_out,
        common_markers=config.common_markers,
        random_state=config.random_state,
        verbose=verbose,
    )
    tidy = change_pop_names(tidy, pop_levels=config.pop_levels, pop_labels=config.pop_labels)

    if verbose:
        print("[INFO] Beta computation ...")
    if "GT_VCF" in tidy.columns:
        counts = allele_counts_from_vcf(tidy)
    elif "GT" in tidy.columns:
        counts = allele_counts_from_gt(tidy)
    else:
        counts = _tally(allele_observations(tidy)[["MARKERS", "POP_ID", "ALLELES"]])
    result = gene_diversity(counts)

    if verbose:
        print("[OK] BETA per pop (averaged over locus):")
        for pop, beta in zip(result.betaiovl["POP_ID"], result.betaiovl["BETAI"]):
            print(f"       - {pop} = {round(beta, 4)}")
        print(f"[INFO] Computation time: {time.time() - start:.2f}s")
    return result
