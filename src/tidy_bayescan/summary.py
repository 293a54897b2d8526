"""
summary.py
==========

报告生成与导出模块（Reporting Layer）
Report generation and export of the beta estimation.

Functions
---------
build_betas_report
    生成每个群体一行的 β 汇总报告。
    Build a one-row-per-population beta summary.

save_betas
    将 β、HW、HB 三张表导出为 TSV。
    Export the beta, HW and HB tables as TSV files.

save_report
    通用报告保存函数（TSV 导出）。
    Save a report DataFrame as a TSV file.
"""

from pathlib import Path
from typing import Dict

import pandas as pd

from tidy_bayescan.betas import BetasResult
from tidy_bayescan.io import save_tsv


def build_betas_report(result: BetasResult) -> pd.DataFrame:
    """
    生成 β 汇总报告

    Build a beta summary report.

    Parameters
    ----------
    result : BetasResult
        ``betas_estimator`` 的结果。 Result of ``betas_estimator``.

    Returns
    -------
    pandas.DataFrame
        每个群体一行，列为 ``POP_ID``、``BETAI``、``N_MARKERS_HW``
        （HW 有定义的标记数）、``MEAN_HW``、``MEAN_HB``。

        One row per population with ``POP_ID``, ``BETAI``,
        ``N_MARKERS_HW`` (markers with a defined HW), ``MEAN_HW`` and
        ``MEAN_HB``.

    Notes
    -----
    - ``MEAN_HB`` 只在该群体有数据的标记上取平均。

      ``MEAN_HB`` is averaged over the markers the population has data
      for.
    """

    print("[INFO] Build betas report:")
    joined = result.hw.merge(result.hb, on="MARKERS", how="left")
    stats = joined.groupby("POP_ID").agg(
        N_MARKERS_HW=("HW", "count"),
        MEAN_HW=("HW", "mean"),
        MEAN_HB=("HB", "mean"),
    ).reset_index()
    report = result.betaiovl.merge(stats, on="POP_ID", how="left")
    print(f"[OK] Betas report built ({len(report)} populations).")
    return report


def save_report(df: pd.DataFrame, path: str | Path) -> None:
    """``save_tsv`` 的轻量封装 / Thin wrapper around ``save_tsv``."""
    save_tsv(df, path, verbose=False)
    print(f"[OK] The report is saved: {path}")


def save_betas(result: BetasResult, prefix: str | Path) -> Dict[str, Path]:
    """
    导出 β 估计的三张表

    Save the three beta tables as ``<prefix>_betaiovl.tsv``,
    ``<prefix>_hw.tsv`` and ``<prefix>_hb.tsv``.

    Returns
    -------
    dict of str to pathlib.Path
        表名到写出路径的映射。 Table name to written path.
    """

    prefix = Path(prefix)
    paths = {
        "betaiovl": prefix.with_name(f"{prefix.name}_betaiovl.tsv"),
        "hw": prefix.with_name(f"{prefix.name}_hw.tsv"),
        "hb": prefix.with_name(f"{prefix.name}_hb.tsv"),
    }
    for name, path in paths.items():
        save_report(getattr(result, name), path)
    return paths
