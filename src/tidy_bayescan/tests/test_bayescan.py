import os
import stat

import pandas as pd
import pytest
from tidy_bayescan import bayescan
from tidy_bayescan.config import BayeScanConfig
from tidy_bayescan.errors import EmptyResultError, MissingInputError


BIALLELIC_EXPECTED = (
    "[loci]=3\n\n"
    "[populations]=2\n\n"
    "[pop]=1\n"
    "1  6  2  3  3\n"
    "2  6  2  4  2\n"
    "3  6  2  6  0\n"
    "\n"
    "[pop]=2\n"
    "1  6  2  5  1\n"
    "2  6  2  1  5\n"
    "3  6  2  2  4\n"
    "\n"
)

MULTIALLELIC_EXPECTED = (
    "[loci]=1\n\n"
    "[populations]=2\n\n"
    "[pop]=1\n"
    "1 6 3 2 1 3\n"
    "\n"
    "[pop]=2\n"
    "1 6 3 3 3 0\n"
    "\n"
)


def test_write_biallelic(tmp_path, dosage_data):
    """测试二等位 BayeScan 文件的逐行内容"""
    res = bayescan.write_bayescan(dosage_data, filename=tmp_path / "bi", parallel_core=1, verbose=False)

    assert res.filename == tmp_path / "bi.txt"
    assert res.biallelic
    assert (res.n_markers, res.n_populations, res.n_individuals) == (3, 2, 6)
    assert res.filename.read_text() == BIALLELIC_EXPECTED


def test_dictionaries_written(tmp_path, dosage_data):
    """测试两个字典表与返回值一致"""
    res = bayescan.write_bayescan(dosage_data, filename=tmp_path / "bi", parallel_core=1, verbose=False)

    assert res.pop_dictionary_path == tmp_path / "bi_pop_dictionary.tsv"
    assert res.markers_dictionary_path == tmp_path / "bi_markers_dictionary.tsv"
    pops = pd.read_csv(res.pop_dictionary_path, sep="\t", dtype=str)
    assert list(pops.columns) == ["POP_ID", "BAYESCAN_POP"]
    assert pops.values.tolist() == [["POP1", "1"], ["POP2", "2"]]
    markers = pd.read_csv(res.markers_dictionary_path, sep="\t")
    assert markers["MARKERS"].tolist() == res.markers_dictionary["MARKERS"].tolist()


def test_write_multiallelic_literal_zero(tmp_path, multiallelic_data):
    """测试多等位文件中未观测到的等位基因写为 0"""
    res = bayescan.write_bayescan(multiallelic_data, filename=tmp_path / "multi", parallel_core=1, verbose=False)
    assert not res.biallelic
    assert res.filename.read_text() == MULTIALLELIC_EXPECTED


def test_write_from_gt_codes(tmp_path, gt_data):
    """测试由 GT 编码重编码后写出"""
    res = bayescan.write_bayescan(gt_data, filename=tmp_path / "gt", parallel_core=1, verbose=False)
    lines = res.filename.read_text().splitlines()
    assert lines[0] == "[loci]=1"
    # A: 001001, 001002 → REF 3, ALT 1；B: 002002, 001002 → REF 1, ALT 3
    assert "1  4  2  3  1" in lines
    assert "1  4  2  1  3" in lines


def test_no_clobbering(tmp_path, dosage_data):
    """测试已存在的目标文件不会被覆盖"""
    existing = tmp_path / "out.txt"
    existing.write_text("keep")

    res = bayescan.write_bayescan(dosage_data, filename=tmp_path / "out", parallel_core=1, verbose=False)
    assert res.filename != existing
    assert res.filename.name.startswith("out_")
    assert existing.read_text() == "keep"
    assert res.filename.read_text() == BIALLELIC_EXPECTED


def test_empty_population_selection(tmp_path, dosage_data):
    """测试群体选择为空时抛出 EmptyResultError 且不写文件"""
    with pytest.raises(EmptyResultError):
        bayescan.write_bayescan(dosage_data, pop_select=["NOPE"], filename=tmp_path / "x",
                                parallel_core=1, verbose=False)
    assert list(tmp_path.iterdir()) == []


def test_missing_input(tmp_path):
    """测试缺少数据时在写文件前报错"""
    with pytest.raises(MissingInputError):
        bayescan.write_bayescan(None, filename=tmp_path / "x")
    with pytest.raises(MissingInputError):
        bayescan.write_bayescan(pd.DataFrame(), filename=tmp_path / "x", parallel_core=1)
    assert list(tmp_path.iterdir()) == []


def test_pop_select_subset(tmp_path, dosage_data):
    """测试 pop_select 后只写出一个群体"""
    res = bayescan.write_bayescan(dosage_data, pop_select=["POP2"], filename=tmp_path / "p2",
                                  parallel_core=1, verbose=False)
    text = res.filename.read_text()
    assert "[populations]=1" in text
    assert res.pop_dictionary["POP_ID"].tolist() == ["POP2"]


def test_config_object(tmp_path, dosage_data):
    """测试使用 BayeScanConfig 传参"""
    config = BayeScanConfig(filename=str(tmp_path / "cfg"), parallel_core=1, verbose=False)
    res = bayescan.write_bayescan(dosage_data, config=config)
    assert res.filename == tmp_path / "cfg.txt"


def test_atomic_write_cleans_up(tmp_path):
    """测试写出失败时不留下部分文件"""
    def blocks():
        yield 1, ["1  2  2  1  1"]
        raise RuntimeError("boom")

    target = tmp_path / "partial.txt"
    with pytest.raises(RuntimeError):
        bayescan.write_bayescan_file(target, 1, 2, blocks())
    assert list(tmp_path.iterdir()) == []


def test_write_from_gt_vcf(tmp_path, vcf_data):
    """测试仅有 GT_VCF 时与 GT 路径写出相同内容"""
    res = bayescan.write_bayescan(vcf_data, filename=tmp_path / "vcf", parallel_core=1, verbose=False)
    lines = res.filename.read_text().splitlines()
    assert "1  4  2  3  1" in lines
    assert "1  4  2  1  3" in lines


def test_numeric_pop_ids(tmp_path, dosage_data):
    """测试数字群体编号可直接用于 pop_select"""
    numeric = dosage_data.assign(POP_ID=dosage_data["POP_ID"].map({"POP1": 1, "POP2": 2}))
    res = bayescan.write_bayescan(numeric, pop_select=[2], filename=tmp_path / "num",
                                  parallel_core=1, verbose=False)
    assert "[populations]=1" in res.filename.read_text()
    assert res.pop_dictionary["POP_ID"].tolist() == ["2"]


@pytest.mark.skipif(os.name == "nt", reason="POSIX file modes")
def test_output_file_mode_follows_umask(tmp_path, dosage_data):
    """测试输出文件权限与普通新建文件一致（受 umask 控制）"""
    old = os.umask(0o022)
    try:
        res = bayescan.write_bayescan(dosage_data, filename=tmp_path / "mode", parallel_core=1, verbose=False)
    finally:
        os.umask(old)
    for path in (res.filename, res.pop_dictionary_path, res.markers_dictionary_path):
        assert stat.S_IMODE(path.stat().st_mode) == 0o644


def test_failed_dictionary_leaves_no_output(tmp_path, dosage_data, monkeypatch):
    """测试任一字典写出失败时三个输出文件都不存在"""
    stage_tsv = bayescan._stage_tsv

    def failing_stage(df, path):
        if path.name.endswith("_markers_dictionary.tsv"):
            raise RuntimeError("disk full")
        return stage_tsv(df, path)

    monkeypatch.setattr(bayescan, "_stage_tsv", failing_stage)
    with pytest.raises(RuntimeError):
        bayescan.write_bayescan(dosage_data, filename=tmp_path / "fail", parallel_core=1, verbose=False)
    assert list(tmp_path.iterdir()) == []
