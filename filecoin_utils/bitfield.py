"""
go-bitfield as rendered by Lotus JSON: a list of alternating run lengths,
starting with a run of *unset* bits, e.g. `[2, 3, 1, 1]` -> {2, 3, 4, 6}.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List, Optional

from .errors import ActorStateDecodeError


def _runs(bitfield: Optional[List[int]]) -> List[int]:
    if bitfield is None:
        return []
    if not isinstance(bitfield, list) or not all(isinstance(x, int) and x >= 0 for x in bitfield):
        raise ActorStateDecodeError(f"unexpected bitfield: {bitfield!r}")
    return bitfield


def count(bitfield: Optional[List[int]]) -> int:
    runs = _runs(bitfield)
    return sum(runs[1::2])


def iter_set(bitfield: Optional[List[int]]) -> Iterator[int]:
    runs = _runs(bitfield)
    pos = 0
    for i in range(0, len(runs), 2):
        pos += runs[i]
        if i + 1 >= len(runs):
            break
        for _ in range(runs[i + 1]):
            yield pos
            pos += 1


def from_numbers(numbers: Iterable[int]) -> List[int]:
    runs: List[int] = []
    prev_end = 0  # one past the last set bit
    run_start: Optional[int] = None
    for n in sorted(set(numbers)):
        if run_start is not None and n == prev_end:
            prev_end += 1
            continue
        if run_start is not None:
            runs.append(prev_end - run_start)
        runs.append(n - prev_end)
        run_start = n
        prev_end = n + 1
    if run_start is not None:
        runs.append(prev_end - run_start)
    return runs


def union(*bitfields: Optional[List[int]]) -> List[int]:
    numbers = set()
    for bf in bitfields:
        numbers.update(iter_set(bf))
    return from_numbers(numbers)

