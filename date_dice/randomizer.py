"""Random activity selection without immediate repetition."""
from __future__ import annotations

import logging
import random
from typing import Optional, Sequence, TypeVar

from .catalog import category_for_term
from .models import ActivityLabel, PoiCategory

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CatalogError(ValueError):
    pass


def pick(catalog: Sequence[T], current: Optional[T], rng: random.Random) -> T:
    """Pick uniformly from ``catalog`` excluding ``current``.

    A single-entry catalog returns its only entry.
    """
    if not catalog:
        raise CatalogError("Cannot pick from an empty catalog")
    if len(catalog) == 1:
        return catalog[0]
    candidates = [item for item in catalog if item != current]
    return rng.choice(candidates or list(catalog))


class ActivityRandomizer:
    def __init__(
        self,
        terms: Sequence[str],
        categories: Sequence[PoiCategory] = (),
        rng: Optional[random.Random] = None,
    ) -> None:
        if not terms:
            raise CatalogError("Search term catalog must not be empty")
        self.terms = list(terms)
        self.categories = list(categories)
        self.rng = rng or random.Random()
        if len(self.terms) < 2:
            logger.warning("Search term catalog has a single entry; rerolls will repeat it")

    def next_label(self, current: Optional[ActivityLabel] = None) -> ActivityLabel:
        """Roll a new term and attach the category for the same activity, if any."""
        term = pick(self.terms, current.term if current else None, self.rng)
        return ActivityLabel(term=term, category=category_for_term(term, self.categories))
