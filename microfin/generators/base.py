"""Base generator class for all data generators."""

from __future__ import annotations

import random
from abc import ABC

from faker import Faker

from microfin.clock import Clock, SystemClock


class BaseGenerator(ABC):
    """Base class for all data generators.

    Provides common initialization: Faker instance creation,
    seed-based reproducibility and the clock generated dates are
    relative to.

    Parameters
    ----------
    seed : int | None
        Random seed for reproducibility.
    locale : str
        Faker locale (default ``en_US``).
    clock : Clock | None
        Reference clock; the wall clock when omitted.
    """

    def __init__(self, seed: int | None = None, locale: str = "en_US", clock: Clock | None = None) -> None:
        self.fake = Faker(locale)
        self.clock = clock or SystemClock()
        if seed is not None:
            self.fake.seed_instance(seed)
            random.seed(seed)
