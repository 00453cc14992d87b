"""
Tests for the batch driver and the validate / report utilities
"""

import sys

import pytest
import pandas as pd

from quota_allocator import GradeLadder, TIER_LABELS, TIER_COUNT, summarize, cli
from quota_allocator.main import load_inputs
from utils.validate import check_allocation
from utils.report import tier_usage
import utils.validate
import utils.report


@pytest.fixture
def customers_csv(tmp_path):
    df = pd.DataFrame([[10] * TIER_COUNT, [5] * TIER_COUNT], columns=TIER_LABELS)
    df.insert(0, "segment", ["A", "B"])
    path = tmp_path / "customers.csv"
    df.to_csv(path, index=False)
    return path


class TestDriver:
    """Test cases for the allocation CLI"""

    def test_load_inputs(self, customers_csv, tmp_path):
        groups = tmp_path / "groups.csv"
        pd.DataFrame({"segment": ["A", "B"], "group_id": ["g1", "g2"]}).to_csv(groups, index=False)
        ratios = tmp_path / "ratios.csv"
        pd.DataFrame({"group_id": ["g1", "g2"], "ratio": [1, 3]}).to_csv(ratios, index=False)

        customers, grouping, group_ratios = load_inputs(customers_csv, groups, ratios)
        assert list(customers.index) == ["A", "B"]
        assert list(customers.columns) == TIER_LABELS
        assert grouping == {"A": "g1", "B": "g2"}
        assert group_ratios == {"g1": 1.0, "g2": 3.0}

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "bad.csv"
        pd.DataFrame({"segment": ["A"], "D30": [1]}).to_csv(path, index=False)
        with pytest.raises(ValueError):
            load_inputs(path)

    def test_cli_writes_allocation(self, customers_csv, tmp_path):
        out = tmp_path / "alloc.csv"
        cli(["--customers", str(customers_csv), "--target", "310", "--out", str(out)])

        result = pd.read_csv(out, dtype={"segment": str}).set_index("segment")
        assert list(result.columns) == TIER_LABELS
        assert result.loc["A", "D10"] == pytest.approx(0.67)
        assert result.loc["B", "D10"] == pytest.approx(0.66)

    def test_cli_exits_on_error(self, customers_csv, tmp_path):
        with pytest.raises(SystemExit) as exc:
            cli(["--customers", str(customers_csv), "--target", "-1", "--out", str(tmp_path / "x.csv")])
        assert exc.value.code == 1

    def test_summarize(self):
        allocation = pd.DataFrame([[1.0, 0.5] + [0] * 28], index=["s"], columns=TIER_LABELS)
        customers = pd.DataFrame([[100, 50] + [0] * 28], index=["s"], columns=TIER_LABELS)
        stats = summarize(allocation, customers, 125)
        assert stats["n_segments"] == 1
        assert stats["per_segment"] == {"s": 125.0}
        assert stats["deepest_tier"] == {"s": "D29"}
        assert stats["error"] == pytest.approx(0)
        assert stats["fill_rate"] == pytest.approx(1.0)


class TestUtils:
    """Test cases for the validator and report helpers"""

    def test_check_allocation_clean(self):
        customers = pd.DataFrame([[100, 50] + [0] * 28], index=["s"], columns=TIER_LABELS)
        allocation = pd.DataFrame([[1.0, 0.5] + [0] * 28], index=["s"], columns=TIER_LABELS)
        assert check_allocation(allocation, customers, GradeLadder(0, 1), 125, 0.01) == []

    def test_check_allocation_flags_violations(self):
        customers = pd.DataFrame([[100, 50, 10] + [0] * 27], index=["s"], columns=TIER_LABELS)
        allocation = pd.DataFrame([[0.5, 1.0, 0.2] + [0] * 27], index=["s"], columns=TIER_LABELS)
        problems = check_allocation(allocation, customers, GradeLadder(0, 1), 1000, 1)
        assert any("D29" in p for p in problems)
        assert any("outside ladder" in p for p in problems)
        assert any("misses target" in p for p in problems)

    def test_tier_usage(self):
        allocation = pd.DataFrame([[1.0, 0.5] + [0] * 28, [1.0] + [0] * 29], index=["a", "b"], columns=TIER_LABELS)
        usage = tier_usage(allocation)
        assert usage["D30"] == 2
        assert usage["D29"] == 1
        assert usage["D1"] == 0

    def test_validate_and_report_scripts(self, customers_csv, tmp_path, monkeypatch, capsys):
        out = tmp_path / "alloc.csv"
        cli(["--customers", str(customers_csv), "--target", "300", "--out", str(out)])

        monkeypatch.setattr(sys, "argv", ["validate", "--customers", str(customers_csv),
                                          "--allocation", str(out), "--target", "300", "--tolerance", "0.01"])
        utils.validate.main()
        lines = capsys.readouterr().out.splitlines()
        assert any(l.startswith("violations") and l.rstrip().endswith(": 0") for l in lines)

        monkeypatch.setattr(sys, "argv", ["report", "--customers", str(customers_csv),
                                          "--allocation", str(out), "--target", "300"])
        utils.report.main()
        text = capsys.readouterr().out
        assert "100.00%" in text
        assert "D30..D11" in text


if __name__ == "__main__":
    pytest.main([__file__])
