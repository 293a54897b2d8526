from .errors import TidyBayeScanError, MissingInputError, InvalidConfigurationError, EmptyResultError
from .config import BayeScanConfig, BetasConfig
from .io import load_tidy, load_strata, read_input, save_tsv, generate_filename
from .clean import clean_markers_names, clean_ind_names, clean_pop_names
from .filters import detect_all_missing, keep_common_markers, discard_monomorphic_markers, prune_snp_ld, select_populations, change_pop_names, tidy_genomic_data
from .recode import change_alleles
from .biallelic import detect_biallelic_markers
from .dictionary import Dictionary, encode_dictionaries
from .counts import biallelic_counts, multiallelic_counts
from .bayescan import BayeScanResult, write_bayescan
from .betas import BetasResult, betas_estimator, gene_diversity
from .summary import build_betas_report, save_betas, save_report

__all__ = [
    "TidyBayeScanError", "MissingInputError", "InvalidConfigurationError", "EmptyResultError",
    "BayeScanConfig", "BetasConfig",
    "load_tidy", "load_strata", "read_input", "save_tsv", "generate_filename",
    "clean_markers_names", "clean_ind_names", "clean_pop_names",
    "detect_all_missing", "keep_common_markers", "discard_monomorphic_markers", "prune_snp_ld", "select_populations", "change_pop_names", "tidy_genomic_data",
    "change_alleles",
    "detect_biallelic_markers",
    "Dictionary", "encode_dictionaries",
    "biallelic_counts", "multiallelic_counts",
    "BayeScanResult", "write_bayescan",
    "BetasResult", "betas_estimator", "gene_diversity",
    "build_betas_report", "save_betas", "save_report",
]
__version__ = "0.1.0"
