import pandas as pd
import pytest
from tidy_bayescan import counts
from tidy_bayescan.dictionary import encode_dictionaries


def test_biallelic_counts_conservation(random_dosage_data):
    """测试二等位计数守恒：REF + ALT = 2 × 非缺失基因型数"""
    data, pops, markers = encode_dictionaries(random_dosage_data)
    out = counts.biallelic_counts(data)

    assert len(out) == len(pops) * len(markers)
    assert (out["REF"] + out["ALT"] == out["GENE_N"]).all()
    assert (out["ALLELE_N"] == 2).all()

    typed = data.loc[data["GT_BIN"].notna()].groupby(["BAYESCAN_POP", "BAYESCAN_MARKERS"]).size() * 2
    merged = out.set_index(["BAYESCAN_POP", "BAYESCAN_MARKERS"])["GENE_N"]
    pd.testing.assert_series_equal(
        merged.reindex(typed.index), typed, check_names=False, check_dtype=False
    )


def test_biallelic_counts_zero_fill():
    """测试群体中无数据的标记以 0 出现"""
    data = pd.DataFrame({
        "BAYESCAN_POP": [1, 1, 2],
        "BAYESCAN_MARKERS": [1, 2, 1],
        "GT_BIN": [0.0, 2.0, 1.0],
    })
    out = counts.biallelic_counts(data)
    row = out.loc[(out["BAYESCAN_POP"] == 2) & (out["BAYESCAN_MARKERS"] == 2)].iloc[0]
    assert (row["GENE_N"], row["REF"], row["ALT"]) == (0, 0, 0)


def test_multiallelic_counts_zero_fill():
    """测试多等位计数补零且 COUNTS 长度等于 ALLELE_N"""
    data = pd.DataFrame({
        "BAYESCAN_MARKERS": [1, 1, 2, 2],
        "BAYESCAN_POP": [1, 2, 1, 2],
        "GT_VCF": ["0/2", "1/1", "0/0", "./."],
    })
    out = counts.multiallelic_counts(data)
    assert len(out) == 4
    assert (out["COUNTS"].map(len) == out["ALLELE_N"]).all()

    m1 = out.loc[out["BAYESCAN_MARKERS"] == 1, "COUNTS"].tolist()
    assert m1 == [[1, 0, 1], [0, 2, 0]]
    m2_pop2 = out.loc[(out["BAYESCAN_MARKERS"] == 2) & (out["BAYESCAN_POP"] == 2)].iloc[0]
    assert m2_pop2["COUNTS"] == [0]
    assert m2_pop2["GENE_N"] == 0


def test_multiallelic_numeric_allele_order():
    """测试数字等位基因按数值排序"""
    data = pd.DataFrame({
        "BAYESCAN_MARKERS": [1, 1],
        "BAYESCAN_POP": [1, 2],
        "GT_VCF": ["10/2", "2/2"],
    })
    out = counts.multiallelic_counts(data)
    assert out["COUNTS"].tolist() == [[1, 1], [2, 0]]
    assert sorted(["10", "2", "A"], key=counts.allele_sort_key) == ["2", "10", "A"]


def test_multiallelic_requires_slash():
    """测试非 a/b 表示报错"""
    data = pd.DataFrame({"BAYESCAN_MARKERS": [1], "BAYESCAN_POP": [1], "GT_VCF": ["01"]})
    with pytest.raises(ValueError):
        counts.multiallelic_counts(data)
