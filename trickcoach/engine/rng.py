"""
Counter-based deterministic random choice.

Every uniform pick is a pure function of (seed, counter): a fresh numpy
Philox generator is keyed with the 32-bit seed and positioned at the
counter, one integer is drawn, and the counter advances by one. Replaying a
run with the same seed and the same sequence of picks therefore reproduces
every choice exactly, with no hidden global state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, TypeVar

import numpy as np

T = TypeVar('T')

SEED_MASK = 0xFFFFFFFF


@dataclass(frozen=True)
class RngState:
    seed: int
    counter: int = 0


def make_rng(seed: int) -> RngState:
    """Create the RNG state for a run; the seed is masked to 32 bits.

    Examples:
        >>> make_rng(-1).seed
        4294967295
    """
    return RngState(seed=int(seed) & SEED_MASK, counter=0)


def pick_index(rng: RngState, n: int) -> tuple[int, RngState]:
    """Draw an index in [0, n) and return it with the advanced state.

    Raises:
        ValueError: If n < 1.
    """
    if n < 1:
        raise ValueError("Cannot pick from an empty collection")
    bit_gen = np.random.Philox(key=rng.seed, counter=rng.counter)
    index = int(np.random.Generator(bit_gen).integers(n))
    return index, RngState(seed=rng.seed, counter=rng.counter + 1)


def pick_uniform(rng: RngState, items: Sequence[T]) -> tuple[T, RngState]:
    """Pick one element of `items` uniformly; consumes one counter step."""
    index, next_rng = pick_index(rng, len(items))
    return items[index], next_rng
