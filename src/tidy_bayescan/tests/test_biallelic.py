import pandas as pd
import pytest
from tidy_bayescan import biallelic
from tidy_bayescan.errors import MissingInputError


def _panel(n_markers, n_alleles, n_ind=6):
    """生成每个标记具有 n_alleles 个等位基因的 GT 面板"""
    codes = [f"{a:03d}" for a in range(1, n_alleles + 1)]
    rows = []
    for m in range(n_markers):
        for i in range(n_ind):
            a1 = codes[i % n_alleles]
            a2 = codes[(i + 1) % n_alleles]
            rows.append({"MARKERS": f"m{m}", "INDIVIDUALS": f"i{i}",
                         "POP_ID": "A" if i < n_ind // 2 else "B", "GT": a1 + a2})
    return pd.DataFrame(rows)


def test_gt_bin_is_biallelic(dosage_data):
    """测试存在 GT_BIN 时直接判为二等位"""
    assert biallelic.detect_biallelic_markers(dosage_data)


def test_alt_column(gt_data):
    """测试 ALT 列的替代等位基因数判定"""
    assert biallelic.detect_biallelic_markers(gt_data.assign(ALT="C"))
    assert not biallelic.detect_biallelic_markers(gt_data.assign(ALT="C,G"))


def test_small_panel(multiallelic_data, gt_data):
    """测试小面板：所有标记均多于两个等位基因时才判为多等位"""
    assert not biallelic.detect_biallelic_markers(multiallelic_data)
    mixed = pd.concat([multiallelic_data, gt_data.assign(MARKERS="M2")], ignore_index=True)
    assert biallelic.detect_biallelic_markers(mixed)


def test_large_panel():
    """测试大面板抽样判定（可复现的随机种子）"""
    assert biallelic.detect_biallelic_markers(_panel(120, 2), random_state=0)
    assert not biallelic.detect_biallelic_markers(_panel(120, 5), random_state=0)


def test_missing_input():
    """测试未提供数据"""
    with pytest.raises(MissingInputError):
        biallelic.detect_biallelic_markers(None)


def test_verbose_output(capsys, multiallelic_data):
    """测试打印判定结果"""
    biallelic.detect_biallelic_markers(multiallelic_data, verbose=True)
    assert "multi-allelic" in capsys.readouterr().out


def test_sampling_is_seedable():
    """测试相同种子得到相同结果"""
    panel = pd.concat([_panel(60, 2), _panel(60, 6).assign(MARKERS=lambda d: "x" + d["MARKERS"])],
                      ignore_index=True)
    runs = {biallelic.detect_biallelic_markers(panel, random_state=3) for _ in range(3)}
    assert len(runs) == 1


def test_gt_vcf_only(vcf_data):
    """测试仅有 GT_VCF 列时的判定"""
    assert biallelic.detect_biallelic_markers(vcf_data)
