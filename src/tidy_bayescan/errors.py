"""
errors.py
=========

异常定义模块（Error Layer）
Exception types raised by the conversion and estimation pipeline.

所有致命错误均在处理开始前或过滤结束后抛出，
不会留下部分写入的输出文件。

Fatal errors are raised either before any processing starts or right
after filtering, so that no partial output file is ever left on disk.
"""


class TidyBayeScanError(Exception):
    """所有包内异常的基类 / Base class of every package error."""


class MissingInputError(TidyBayeScanError):
    """未提供数据或数据为空 / No data supplied, or the data is empty."""


class InvalidConfigurationError(TidyBayeScanError):
    """
    配置参数互相矛盾

    Raised when run options contradict each other, e.g. ``pop_labels``
    given without ``pop_levels`` (or the reverse, or different lengths).
    """


class EmptyResultError(TidyBayeScanError):
    """
    过滤后没有剩余的标记或个体

    Raised when filtering (population selection, common markers,
    monomorphic removal, blacklists) leaves zero markers or zero
    individuals.
    """
