"""Budget Tests"""

import pytest

from services.jobs import parse_budget, summarize_budget


class TestSummarizeBudget:
    def test_default_ceiling(self):
        """Test remaining budget against the default ceiling."""
        spent = sum([0.03, 0.075, 0.05])
        summary = summarize_budget(spent, None, 20.0).to_dict()

        assert summary == {
            "budget": 20.0,
            "manualBudget": None,
            "spent": 0.155,
            "remaining": 19.845,
            "hasManualBudget": False,
            "exceeded": False,
        }

    def test_manual_budget_exceeded(self):
        summary = summarize_budget(0.5, 0.25, 20.0)

        assert summary.ceiling == 0.25
        assert summary.has_manual_budget
        assert summary.is_exceeded
        assert summary.to_dict()["remaining"] == -0.25

    def test_zero_manual_budget_is_kept(self):
        assert summarize_budget(0.0, 0.0, 20.0).ceiling == 0.0


class TestParseBudget:
    @pytest.mark.parametrize("value,expected", [(None, None), (0, 0.0), ("12.5", 12.5), (30, 30.0)])
    def test_valid(self, value, expected):
        assert parse_budget(value) == expected

    @pytest.mark.parametrize("value", [-1, "abc", True, float("nan"), float("inf"), [5]])
    def test_invalid(self, value):
        with pytest.raises(ValueError, match="Invalid budget amount"):
            parse_budget(value)
