"""Weighted draws of unique trait combinations."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Set, Tuple

from .catalog import Layer, Trait
from .errors import ExhaustedCombinationSpaceError

LOGGER = logging.getLogger("nftgen.sampler")


@dataclass(frozen=True)
class Combination:
    """One trait per layer, in layer order."""

    picks: Tuple[Tuple[Layer, Trait], ...]

    @property
    def fingerprint(self) -> str:
        # sorted so the key does not depend on layer iteration order
        return ";".join(sorted(f"{layer.name}:{trait.name}" for layer, trait in self.picks))


def combination_space(catalog: Sequence[Layer]) -> int:
    """Number of distinct combinations the catalog can produce."""

    total = 1
    for layer in catalog:
        total *= len(layer.traits)
    return total


def pick_trait(traits: Sequence[Trait], rng: random.Random) -> Trait:
    """Pick one trait with probability proportional to its rarity weight."""

    total = sum(trait.rarity for trait in traits)
    r = rng.random() * total
    cumulative = 0.0
    for trait in traits:
        cumulative += trait.rarity
        if r < cumulative:
            return trait
    # float rounding can leave r == total
    return traits[-1]


def draw_combination(catalog: Sequence[Layer], rng: random.Random) -> Combination:
    return Combination(tuple((layer, pick_trait(layer.traits, rng)) for layer in catalog))


class UniqueCombinationSampler:
    """Lazily yields combinations never emitted before by this sampler.

    Duplicate draws are thrown away and redrawn. After
    ``max_consecutive_rejections`` duplicates in a row the sampler gives up
    with :class:`ExhaustedCombinationSpaceError` instead of spinning forever.
    The seen-set lives on the instance, so a sampler belongs to one job.
    """

    def __init__(
        self,
        catalog: Sequence[Layer],
        rng: Optional[random.Random] = None,
        max_consecutive_rejections: int = 10000,
    ):
        self.catalog = tuple(catalog)
        self.rng = rng or random.Random()
        self.max_consecutive_rejections = max_consecutive_rejections
        self.seen: Set[str] = set()

    def next_unique(self, target: int = 0) -> Combination:
        rejections = 0
        while True:
            combination = draw_combination(self.catalog, self.rng)
            key = combination.fingerprint
            if key not in self.seen:
                self.seen.add(key)
                return combination
            rejections += 1
            if rejections >= self.max_consecutive_rejections:
                raise ExhaustedCombinationSpaceError(len(self.seen), target, rejections)

    def take(self, count: int) -> Iterator[Combination]:
        """Yield exactly *count* new combinations."""

        for _ in range(count):
            yield self.next_unique(count)
