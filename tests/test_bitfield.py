import pytest

from filecoin_utils import bitfield
from filecoin_utils.errors import ActorStateDecodeError


def test_count_and_iter():
    bf = [2, 3, 1, 1]
    assert bitfield.count(bf) == 4
    assert list(bitfield.iter_set(bf)) == [2, 3, 4, 6]
    assert bitfield.count(None) == 0
    assert bitfield.count([]) == 0
    # trailing unset run
    assert list(bitfield.iter_set([0, 2, 5])) == [0, 1]


def test_from_numbers():
    assert bitfield.from_numbers([6, 2, 3, 4, 3]) == [2, 3, 1, 1]
    assert bitfield.from_numbers([0, 1]) == [0, 2]
    assert bitfield.from_numbers([]) == []


def test_union():
    assert bitfield.union([0, 2], [3, 1]) == [0, 2, 1, 1]
    assert bitfield.union() == []
    assert bitfield.union([1, 1], None, [1, 1]) == [1, 1]


@pytest.mark.parametrize("bad", [[-1, 2], [1, "2"], {"a": 1}])
def test_malformed(bad):
    with pytest.raises(ActorStateDecodeError):
        bitfield.count(bad)
