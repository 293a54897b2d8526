"""
config.py
=========

运行参数模块（Configuration Layer）
Validated run options for the BayeScan writer and the beta estimator.

Classes
-------
BayeScanConfig
    ``write_bayescan`` 的参数集合。
    Options of ``write_bayescan``.

BetasConfig
    ``betas_estimator`` 的参数集合，过滤参数原样传递给数据导入链。
    Options of ``betas_estimator``; filtering options are passed through
    unchanged to the tidy ingestion chain.
"""

from typing import Any, List, Optional, Union

import psutil
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tidy_bayescan.errors import InvalidConfigurationError

SNP_LD_STRATEGIES = ("first", "last", "middle", "random")


def default_parallel_core() -> int:
    """可用逻辑核数减一（至少为 1） / Logical cores minus one, at least 1."""
    cores = psutil.cpu_count(logical=True) or 1
    return max(cores - 1, 1)


def _check_snp_ld(value):
    if value is None:
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid snp_ld: {value}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"snp_ld distance must be >= 0, got {value}")
        return value
    if value not in SNP_LD_STRATEGIES:
        raise ValueError(f"Unknown snp_ld strategy: {value} (expected one of {SNP_LD_STRATEGIES} or an integer)")
    return value


def _as_population_ids(value):
    """群体编号统一为字符串列表（数字编号同样接受） / Population IDs as a list of str."""
    if value is None:
        return value
    if isinstance(value, (str, int)):
        value = [value]
    return [str(v).strip() for v in value]


class BayeScanConfig(BaseModel):
    pop_select: Optional[List[str]] = None
    snp_ld: Optional[Union[int, str]] = None
    filename: Optional[str] = None
    parallel_core: int = Field(default_factory=default_parallel_core, ge=1)
    random_state: Optional[int] = None
    verbose: bool = True

    @field_validator("pop_select", mode="before")
    @classmethod
    def validate_pop_select(cls, value):
        return _as_population_ids(value)

    @field_validator("snp_ld")
    @classmethod
    def validate_snp_ld(cls, value):
        return _check_snp_ld(value)


class BetasConfig(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    strata: Optional[Any] = None
    monomorphic_out: bool = True
    common_markers: bool = True
    pop_levels: Optional[List[str]] = None
    pop_labels: Optional[List[str]] = None
    pop_select: Optional[List[str]] = None
    blacklist_id: Optional[Any] = None
    blacklist_genotype: Optional[Any] = None
    whitelist_markers: Optional[Any] = None
    max_marker: Optional[int] = Field(default=None, ge=1)
    snp_ld: Optional[Union[int, str]] = None
    random_state: Optional[int] = None
    verbose: bool = False

    @field_validator("pop_levels", "pop_labels", "pop_select", mode="before")
    @classmethod
    def validate_population_ids(cls, value):
        return _as_population_ids(value)

    @field_validator("snp_ld")
    @classmethod
    def validate_snp_ld(cls, value):
        return _check_snp_ld(value)

    @model_validator(mode="after")
    def validate_pop_relabel(self) -> "BetasConfig":
        # InvalidConfigurationError 不是 ValueError，pydantic 会原样抛出
        if self.pop_labels is not None and self.pop_levels is None:
            raise InvalidConfigurationError("pop_levels is required if you use pop_labels")
        if self.pop_levels is not None and self.pop_labels is None:
            raise InvalidConfigurationError("pop_labels is required if you use pop_levels")
        if self.pop_levels is not None and len(self.pop_levels) != len(self.pop_labels):
            raise InvalidConfigurationError(
                f"pop_levels ({len(self.pop_levels)}) and pop_labels ({len(self.pop_labels)}) differ in length"
            )
        return self
