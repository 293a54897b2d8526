import pytest
import pandas as pd
import numpy as np


@pytest.fixture(scope="module")
def tmp_dir(tmp_path_factory):
    """创建一个模块级临时目录，用于保存测试输出文件"""
    d = tmp_path_factory.mktemp("tmp")
    return d


@pytest.fixture
def dosage_data():
    """两个群体、三个标记、无缺失的剂量编码数据"""
    dosages = {
        ("POP1", "M1"): [0, 1, 2],
        ("POP1", "M2"): [1, 1, 0],
        ("POP1", "M3"): [0, 0, 0],
        ("POP2", "M1"): [0, 0, 1],
        ("POP2", "M2"): [2, 2, 1],
        ("POP2", "M3"): [2, 1, 1],
    }
    individuals = {"POP1": ["i1", "i2", "i3"], "POP2": ["i4", "i5", "i6"]}
    rows = []
    for (pop, marker), values in dosages.items():
        for ind, d in zip(individuals[pop], values):
            rows.append({"MARKERS": marker, "INDIVIDUALS": ind, "POP_ID": pop, "GT_BIN": d})
    return pd.DataFrame(rows)


@pytest.fixture
def multiallelic_data():
    """一个标记、三个全局等位基因；POP2 从未观测到等位基因 003"""
    return pd.DataFrame({
        "MARKERS": ["M1"] * 6,
        "INDIVIDUALS": ["i1", "i2", "i3", "i4", "i5", "i6"],
        "POP_ID": ["POP1", "POP1", "POP1", "POP2", "POP2", "POP2"],
        "GT": ["001002", "003003", "001003", "001002", "002002", "001001"],
    })


@pytest.fixture
def gt_data():
    """6 位编码的二等位数据，含一个缺失基因型"""
    return pd.DataFrame({
        "MARKERS": ["M1"] * 5,
        "INDIVIDUALS": ["i1", "i2", "i3", "i4", "i5"],
        "POP_ID": ["A", "A", "B", "B", "B"],
        "GT": ["001001", "001002", "002002", "001002", "000000"],
    })


@pytest.fixture
def vcf_data():
    """与 gt_data 相同的基因型，使用 VCF 表示（001 → 0，002 → 1）"""
    return pd.DataFrame({
        "MARKERS": ["M1"] * 5,
        "INDIVIDUALS": ["i1", "i2", "i3", "i4", "i5"],
        "POP_ID": ["A", "A", "B", "B", "B"],
        "GT_VCF": ["0/0", "0/1", "1/1", "0/1", "./."],
    })


@pytest.fixture
def random_dosage_data():
    """随机生成的剂量数据（含缺失），用于守恒性检查"""
    rng = np.random.default_rng(7)
    rows = []
    for m in range(12):
        for p in range(3):
            for i in range(8):
                d = rng.integers(0, 3)
                rows.append({
                    "MARKERS": f"snp{m}",
                    "INDIVIDUALS": f"ind{p}_{i}",
                    "POP_ID": f"pop{p}",
                    "GT_BIN": np.nan if rng.random() < 0.15 else float(d),
                })
    return pd.DataFrame(rows)
