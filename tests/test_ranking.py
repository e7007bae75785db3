"""Unit tests for standard competition ranking."""

from gradebook.core.ranking import competition_ranks, rank_map


def test_ties_share_rank_and_next_value_skips() -> None:
    ranked = competition_ranks([("a", 18), ("b", 15), ("c", 15), ("d", 10)])
    assert [rank for _, _, rank in ranked] == [1, 2, 2, 4]


def test_sorted_descending_regardless_of_input_order() -> None:
    ranked = competition_ranks([("low", 8), ("high", 17), ("mid", 12)])
    assert [key for key, _, _ in ranked] == ["high", "mid", "low"]
    assert [rank for _, _, rank in ranked] == [1, 2, 3]


def test_ties_keep_input_order() -> None:
    ranked = competition_ranks([("first", 12), ("second", 12), ("third", 12)])
    assert [key for key, _, _ in ranked] == ["first", "second", "third"]
    assert {rank for _, _, rank in ranked} == {1}


def test_empty_input() -> None:
    assert competition_ranks([]) == []


def test_rank_map() -> None:
    assert rank_map([("x", 9), ("y", 14), ("z", 9)]) == {"y": 1, "x": 2, "z": 2}
