# listline_system/utils/name_pool.py
"""
Display names for simulated registrations.
"""
import random
from typing import Sequence, Set

from listline_system.config.business import FIRST_NAMES


class NamePool:
    """
    Draws names without repetition while unused names remain,
    then falls back to the full pool.
    """

    def __init__(self, rng: random.Random, names: Sequence[str] = FIRST_NAMES):
        self.rng = rng
        self.names = tuple(names)
        self.used: Set[str] = set()

    def draw(self) -> str:
        unused = [n for n in self.names if n not in self.used]
        name = self.rng.choice(unused or self.names)
        self.used.add(name)
        return name

    def mark_used(self, name: str) -> None:
        self.used.add(name)
