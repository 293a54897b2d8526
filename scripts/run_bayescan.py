"""
run_bayescan.py
---------------
BayeScan 转换与 β 估计主脚本（Pipeline Orchestrator）
Main script converting a tidy genotype file to BayeScan and estimating betas.

流程 / Workflow:
    1. 读取 tidy 基因型文件（可选分层表）
       Load the tidy genotype file (and optional strata)
    2. 写出 BayeScan 文件与两个字典表
       Write the BayeScan file and its two dictionaries
    3. 估计每个群体的 β 并导出 HW / HB / β 表与汇总报告
       Estimate betas and export the HW / HB / beta tables and summary
"""

import argparse
import time
import warnings
from pathlib import Path

import tidy_bayescan as tb

warnings.filterwarnings("ignore", category=FutureWarning)


def main():
    ap = argparse.ArgumentParser(description="Convert a tidy genotype file to BayeScan and estimate betas.")
    ap.add_argument("--tidy", type=str, required=True, help="Tidy genotype file (TSV, CSV or Parquet)")
    ap.add_argument("--strata", type=str, default=None, help="Strata file (INDIVIDUALS, STRATA)")
    ap.add_argument("--pop_select", type=str, default="", help="Comma-separated populations to keep")
    ap.add_argument("--snp_ld", type=str, default=None, help="first/last/middle/random or a bp distance")
    ap.add_argument("--out", type=str, default="results/bayescan", help="Output prefix")
    ap.add_argument("--cores", type=int, default=None, help="Parallel jobs for allele re-coding")
    ap.add_argument("--seed", type=int, default=None, help="Random seed")
    ap.add_argument("--skip_betas", action="store_true", help="Only write the BayeScan file")
    args = ap.parse_args()

    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    pop_select = [p.strip() for p in args.pop_select.split(",") if p.strip()] or None
    snp_ld = int(args.snp_ld) if args.snp_ld and args.snp_ld.isdigit() else args.snp_ld

    # === 1. 读取数据 ===
    start = time.time()
    data = tb.load_tidy(args.tidy)
    if args.strata:
        data = tb.filters.apply_strata(data, args.strata)

    # === 2. BayeScan ===
    res = tb.write_bayescan(
        data,
        pop_select=pop_select,
        snp_ld=snp_ld,
        filename=out,
        parallel_core=args.cores,
        random_state=args.seed,
    )
    print(f"[OK] BayeScan: {res.filename} ({res.n_markers} markers, {res.n_populations} populations)")

    # === 3. β 估计 ===
    if not args.skip_betas:
        betas = tb.betas_estimator(data, pop_select=pop_select, snp_ld=snp_ld, random_state=args.seed, verbose=True)
        tb.save_betas(betas, out)
        report = tb.build_betas_report(betas)
        tb.save_report(report, out.with_name(f"{out.name}_betas_report.tsv"))

    print(f"[OK] Pipeline completed in {time.time() - start:.2f}s")


if __name__ == "__main__":
    main()
