from __future__ import annotations

import pytest

from numisync.domain.matching import similarity


def test_identical_strings_score_one() -> None:
    assert similarity("Kopek", "kopek ") == 1.0


def test_two_blank_values_are_identical() -> None:
    assert similarity(None, "") == 1.0


def test_single_character_against_longer_text_scores_zero() -> None:
    assert similarity("a", "ab") == 0.0


def test_dice_coefficient_over_bigrams() -> None:
    assert similarity("night", "nacht") == pytest.approx(0.25)


def test_repeated_bigrams_are_counted_as_multiset() -> None:
    assert similarity("aaaa", "aa") == pytest.approx(0.5)
    assert similarity("aaa", "aa") == pytest.approx(2 / 3)
