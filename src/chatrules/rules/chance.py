"""Probabilistic gating of matched rules."""

import random
from typing import Optional

from .models import Rule


class ChanceGate:
    """
    Pass/fail draw for a percentage.

    Each call draws a fresh integer in [1, 100]; the gate passes when the
    draw is at or below the percentage. A missing percentage always passes
    without drawing.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def roll(self, chance_percent: Optional[int]) -> bool:
        if chance_percent is None:
            return True
        return self._rng.randint(1, 100) <= chance_percent

    def passes(self, rule: Rule) -> bool:
        """Rule-level gate, applied after a match and before dispatch."""
        return self.roll(rule.chance_percent)

    def choice(self, options):
        return self._rng.choice(options)
