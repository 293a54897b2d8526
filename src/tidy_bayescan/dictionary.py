"""
dictionary.py
=============

字典编码模块
Dense integer encoding of population and marker identifiers.

BayeScan 只接受整数编号的群体与位点。本模块对不同取值
先排序再依次编号（1..K），并保留双向查找表，
作为输出文件旁的字典表写出。

BayeScan only accepts integer population and locus identifiers. The
distinct values are sorted then enumerated (1..K); the bidirectional
lookup tables are kept and written next to the output file.
"""

from dataclasses import dataclass
from typing import Tuple

import pandas as pd


def _sorted_unique(values: pd.Series) -> list:
    uniques = list(pd.unique(values.dropna()))
    try:
        return sorted(uniques)
    except TypeError:
        # 混合类型时按字符串排序
        return sorted(uniques, key=str)


@dataclass
class Dictionary:
    """
    原始标识符 ↔ 整数编号的一一映射

    One-to-one mapping between original identifiers and dense codes.

    Attributes
    ----------
    original_column : str
        原始标识符列名，如 ``"POP_ID"``。 Original column, e.g. ``"POP_ID"``.

    code_column : str
        编号列名，如 ``"BAYESCAN_POP"``。 Code column, e.g. ``"BAYESCAN_POP"``.

    table : pandas.DataFrame
        两列查找表，按编号升序。 Two-column lookup table sorted by code.
    """

    original_column: str
    code_column: str
    table: pd.DataFrame

    @classmethod
    def from_values(cls, values: pd.Series, original_column: str, code_column: str) -> "Dictionary":
        uniques = _sorted_unique(values)
        table = pd.DataFrame({
            original_column: uniques,
            code_column: range(1, len(uniques) + 1),
        })
        return cls(original_column, code_column, table)

    @property
    def codes(self) -> dict:
        return dict(zip(self.table[self.original_column], self.table[self.code_column]))

    @property
    def originals(self) -> dict:
        return dict(zip(self.table[self.code_column], self.table[self.original_column]))

    def encode(self, values: pd.Series) -> pd.Series:
        """原始值 → 编号；未知值抛出 ``KeyError``。"""
        codes = self.codes
        unknown = set(pd.unique(values)) - codes.keys()
        if unknown:
            raise KeyError(f"Values not in the {self.original_column} dictionary: {sorted(map(str, unknown))}")
        return values.map(codes).astype(int)

    def decode(self, codes: pd.Series) -> pd.Series:
        """编号 → 原始值。"""
        originals = self.originals
        unknown = set(pd.unique(codes)) - originals.keys()
        if unknown:
            raise KeyError(f"Codes not in the {self.original_column} dictionary: {sorted(unknown)}")
        return codes.map(originals)

    def __len__(self) -> int:
        return len(self.table)


def encode_dictionaries(data: pd.DataFrame) -> Tuple[pd.DataFrame, Dictionary, Dictionary]:
    """
    为群体与标记建立字典并添加整数编号列

    Build the population and marker dictionaries and add the integer
    code columns ``BAYESCAN_POP`` and ``BAYESCAN_MARKERS``.

    Returns
    -------
    data : pandas.DataFrame
        带编号列的副本。 Copy with the code columns added.

    pop_dictionary : Dictionary
        ``POP_ID`` ↔ ``BAYESCAN_POP``。

    markers_dictionary : Dictionary
        ``MARKERS`` ↔ ``BAYESCAN_MARKERS``。
    """

    pop_dictionary = Dictionary.from_values(data["POP_ID"], "POP_ID", "BAYESCAN_POP")
    markers_dictionary = Dictionary.from_values(data["MARKERS"], "MARKERS", "BAYESCAN_MARKERS")

    data = data.copy()
    data["BAYESCAN_POP"] = pop_dictionary.encode(data["POP_ID"])
    data["BAYESCAN_MARKERS"] = markers_dictionary.encode(data["MARKERS"])
    return data, pop_dictionary, markers_dictionary
