"""Sequential Bayesian estimate of exam readiness.

Each scored item is treated as evidence about mastery: its score ratio ``r``
is the likelihood under "mastered" and ``1 - r`` under "not mastered".  The
posterior is rebuilt from the full history on every call, so the result
depends on item order and nothing is cached between calls.
"""
from __future__ import annotations

from typing import Sequence

from . import config

__all__ = [
    "calculate_bayesian_pass_probability",
    "readiness_label",
]


def calculate_bayesian_pass_probability(
    scores: Sequence[float],
    total_possible: Sequence[float],
) -> float:
    """Return the posterior pass probability in ``[0, 1]``.

    Parameters
    ----------
    scores:
        Points earned per item, in answer order.
    total_possible:
        Maximum points per item, aligned with ``scores``.  A score with no
        matching total counts as a ratio of 0.

    Returns
    -------
    float
        ``0.5`` for an empty history.  Steps whose evidence denominator
        falls below ``BAYES_MIN_DENOMINATOR`` are skipped.
    """

    prior = config.BAYES_PRIOR
    for i, earned in enumerate(scores):
        possible = total_possible[i] if i < len(total_possible) else 0
        ratio = earned / possible if possible > 0 else 0.0
        likelihood = ratio
        complement = 1.0 - ratio

        denominator = likelihood * prior + complement * (1.0 - prior)
        if denominator < config.BAYES_MIN_DENOMINATOR:
            continue
        prior = likelihood * prior / denominator

    return max(0.0, min(1.0, prior))


def readiness_label(probability: float) -> str:
    p = float(probability)
    if p >= 0.80: return "READY"
    if p >= 0.65: return "LIKELY"
    if p >= 0.50: return "NEEDS WORK"
    return "NOT READY"
