"""
clean.py
========

名称清洗模块
Name-cleaning helpers for markers, individuals and populations.

部分下游软件无法处理标记名、个体名或群体名中的特殊分隔符，
本模块将这些字符替换为安全字符。

Some downstream programs choke on separators inside marker, individual
or population names; these helpers substitute them with safe characters.
"""

import pandas as pd


def _replace_all(x, patterns: dict):
    if isinstance(x, pd.Series):
        out = x.astype(str)
        for old, new in patterns.items():
            out = out.str.replace(old, new, regex=False)
        return out
    if isinstance(x, (list, tuple)):
        return [_replace_all(v, patterns) for v in x]
    out = str(x)
    for old, new in patterns.items():
        out = out.replace(old, new)
    return out


def clean_markers_names(x):
    """``/``、``:``、``-``、``.`` → ``_``"""
    return _replace_all(x, {"/": "_", ":": "_", "-": "_", ".": "_"})


def clean_ind_names(x):
    """``_``、``:`` → ``-``"""
    return _replace_all(x, {"_": "-", ":": "-"})


def clean_pop_names(x):
    """空格 → ``_`` / Space to underscore."""
    return _replace_all(x, {" ": "_"})
