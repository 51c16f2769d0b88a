from __future__ import annotations

import pytest

from swipematch.consensus.policy import (
    is_consensus_reached,
    is_unanimous,
    required_count,
)


@pytest.mark.parametrize("members", [2, 3])
def test_small_groups_need_everyone(members):
    assert required_count(members) == members


@pytest.mark.parametrize("members,required", [(4, 3), (5, 3), (6, 4), (7, 4), (10, 6), (11, 6)])
def test_larger_groups_need_strict_majority(members, required):
    assert required_count(members) == required
    assert required_count(members) == members // 2 + 1


@pytest.mark.parametrize("members", [0, 1])
def test_consensus_impossible_below_two_members(members):
    assert required_count(members) is None
    for affirmative in range(0, 5):
        assert not is_consensus_reached(affirmative, members)


def test_negative_member_count_rejected():
    with pytest.raises(ValueError):
        required_count(-1)


def test_consensus_reached_at_threshold():
    assert not is_consensus_reached(2, 3)
    assert is_consensus_reached(3, 3)
    assert not is_consensus_reached(2, 5)
    assert is_consensus_reached(3, 5)
    assert is_consensus_reached(4, 5)


def test_unanimous_flag():
    assert is_unanimous(3, 3)
    assert not is_unanimous(3, 5)
    assert not is_unanimous(1, 1)
