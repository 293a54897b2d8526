"""
biallelic.py
============

二等位检测模块
Detect whether the markers of a tidy dataset are biallelic.

判定规则（按优先级）：

1. 存在 ``GT_BIN`` 列：直接视为二等位；
2. 存在 ``ALT`` 列（VCF 来源，逗号分隔的替代等位基因）：
   替代等位基因数最大值不超过 1 时为二等位；
3. 否则抽样标记并统计每个标记的不同等位基因数：
   少于 100 个标记时全部使用，否则无放回随机抽取 30%。
   - 小面板：只有当所有标记的等位基因数都大于 2 时才判为多等位；
   - 大面板：等位基因数最大值大于 4 时判为多等位。

Decision rules, in order:

1. a ``GT_BIN`` column exists: biallelic;
2. an ``ALT`` column exists (VCF-derived, comma-separated alternate
   alleles): biallelic iff the maximum alternate-allele count is <= 1;
3. otherwise markers are sampled (all of them below 100 markers, 30 %
   without replacement above) and distinct alleles are counted:
   - small panel: multiallelic only if every marker has > 2 alleles;
   - large panel: multiallelic if the maximum count exceeds 4.
"""

import numpy as np
import pandas as pd

from tidy_bayescan.errors import MissingInputError
from tidy_bayescan.filters import allele_observations, detect_all_missing
from tidy_bayescan.io import read_input

SMALL_PANEL = 100
SAMPLE_FRACTION = 0.30


def detect_biallelic_markers(
        data,
        verbose: bool = False,
        random_state: int | None = None
) -> bool:
    """
    检测数据集是否为二等位标记

    Detect if the markers of a tidy dataset are biallelic.

    Parameters
    ----------
    data : pandas.DataFrame or str or pathlib.Path
        tidy 表或其文件路径。
        Tidy data, or the path of a tidy file.

    verbose : bool, default=False
        是否打印判定结果。 Whether to print the outcome.

    random_state : int or None, default=None
        大面板抽样的随机种子；为 ``None`` 时每次抽样不同。

        Seed of the large-panel sampling; ``None`` draws a different
        sample on every call.

    Returns
    -------
    bool
        ``True`` 表示二等位。 ``True`` when the data is biallelic.

    Raises
    ------
    MissingInputError
        未提供数据。 No data supplied.
    """

    if data is None:
        raise MissingInputError("Input file missing")
    data = read_input(data)

    if "GT_BIN" in data.columns:
        return _report(True, verbose)

    data, _ = detect_all_missing(data, verbose=verbose)
    if verbose:
        print("[INFO] Scanning for number of alleles per marker...")

    if "ALT" in data.columns:
        alt = pd.Series(data["ALT"].dropna().astype(str).unique())
        alt_num = int(alt.str.count(",").max()) + 1 if len(alt) else 1
        return _report(alt_num <= 1, verbose)

    if not {"GT", "GT_VCF", "GT_VCF_NUC"} & set(data.columns):
        raise KeyError("Detecting biallelic markers requires a GT, GT_VCF, GT_BIN or ALT column.")

    markers = data["MARKERS"].unique()
    n_markers = len(markers)
    small_panel = n_markers < SMALL_PANEL
    if small_panel:
        sampled = markers
    else:
        rng = np.random.default_rng(random_state)
        sampled = rng.choice(markers, size=int(n_markers * SAMPLE_FRACTION), replace=False)

    alleles = allele_observations(data.loc[data["MARKERS"].isin(sampled)])
    n_alleles = alleles[["MARKERS", "ALLELES"]].drop_duplicates().groupby("MARKERS").size()

    if small_panel:
        biallelic = int((n_alleles > 2).sum()) != n_markers
    else:
        biallelic = not (n_alleles.max() > 4)
    return _report(bool(biallelic), verbose)


def _report(biallelic: bool, verbose: bool) -> bool:
    if verbose:
        print("[OK] Data is bi-allelic" if biallelic else "[OK] Data is multi-allelic")
    return biallelic
