"""Tests for utils/math_utils.py."""

from __future__ import annotations

import pytest

from learnprogress.utils.math_utils import clamp, prune_history, round_xp, safe_ratio


class TestRoundXP:
    """Tests for XP amount normalization."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (12.6, 13),
            (10, 10),
            (0, 0),
            (-5, 0),
            (float("nan"), 0),
            (float("inf"), 0),
            ("10", 0),
            (None, 0),
            (True, 0),
        ],
    )
    def test_round_xp(self, value: object, expected: int) -> None:
        """Only finite, positive numbers survive rounding."""
        assert round_xp(value) == expected


class TestRatios:
    """Tests for clamp and safe_ratio."""

    def test_clamp(self) -> None:
        """Values are bounded on both sides."""
        assert clamp(150, 0, 100) == 100
        assert clamp(-10, 0, 100) == 0
        assert clamp(50, 0, 100) == 50

    def test_safe_ratio(self) -> None:
        """Ratios are clamped to 0..1 and a non-positive target is complete."""
        assert safe_ratio(1, 4) == 0.25
        assert safe_ratio(9, 4) == 1.0
        assert safe_ratio(0, 0) == 1.0


class TestPruneHistory:
    """Tests for capping lists from the oldest end."""

    def test_prune_keeps_newest_in_place(self) -> None:
        """The oldest entries are dropped and the same list is returned."""
        history = list(range(10))
        result = prune_history(history, 3)
        assert result is history
        assert history == [7, 8, 9]

    def test_prune_under_cap_is_noop(self) -> None:
        """Short lists are untouched."""
        history = [1, 2]
        assert prune_history(history, 5) == [1, 2]
