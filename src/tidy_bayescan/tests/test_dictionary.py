import pandas as pd
import pytest
from tidy_bayescan import dictionary


def test_from_values_sorted_and_dense():
    """测试先排序再编号（1..K）"""
    d = dictionary.Dictionary.from_values(pd.Series(["pop_b", "pop_a", "pop_b", "pop_c"]), "POP_ID", "BAYESCAN_POP")
    assert d.table["POP_ID"].tolist() == ["pop_a", "pop_b", "pop_c"]
    assert d.table["BAYESCAN_POP"].tolist() == [1, 2, 3]
    assert len(d) == 3


def test_round_trip_and_injective():
    """测试编码 / 解码往返且一一对应"""
    values = pd.Series(["m10", "m2", "m1", "m2"])
    d = dictionary.Dictionary.from_values(values, "MARKERS", "BAYESCAN_MARKERS")
    codes = d.encode(values)
    assert d.decode(codes).tolist() == values.tolist()
    assert len(set(d.codes.values())) == len(d.codes)


def test_unknown_values():
    """测试未知值抛出 KeyError"""
    d = dictionary.Dictionary.from_values(pd.Series(["a", "b"]), "POP_ID", "BAYESCAN_POP")
    with pytest.raises(KeyError):
        d.encode(pd.Series(["c"]))
    with pytest.raises(KeyError):
        d.decode(pd.Series([9]))


def test_encode_dictionaries(dosage_data):
    """测试为 tidy 表添加 BAYESCAN 编号列"""
    data, pops, markers = dictionary.encode_dictionaries(dosage_data)
    assert {"BAYESCAN_POP", "BAYESCAN_MARKERS"}.issubset(data.columns)
    assert pops.codes == {"POP1": 1, "POP2": 2}
    assert markers.codes == {"M1": 1, "M2": 2, "M3": 3}
    assert "BAYESCAN_POP" not in dosage_data.columns
