"""Evaluation module for handauth

This module contains:
- threshold_range: decision thresholds swept during evaluation
- VerificationStats: accept/reject counts per threshold
- verify_samples: score probes once, decide them at every threshold

Run genuine probes and forgeries into separate VerificationStats: the
rejection rate of genuine probes is the false rejection rate, the acceptance
rate of forgeries the false acceptance rate.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from handauth.logger import get_logger
from handauth.models import Sample
from handauth.scoring import AreaThresholdWeights, Score
from handauth.template import Template
from handauth.config import MIN_THRESHOLD, MAX_THRESHOLD, THRESHOLD_STEP

logger = get_logger(__name__)


def threshold_range(minimum: float = None, maximum: float = None, step: float = None) -> List[float]:
    """Thresholds ``minimum + i * step`` rounded to 3 decimals.

    Generation stops after the first value reaching ``maximum``, so the
    maximum itself is included when the step lands on it.

    Args:
        minimum: First threshold (uses config default if None)
        maximum: Upper bound (uses config default if None)
        step: Increment (uses config default if None)

    Raises:
        ValueError: If step is not positive
    """
    if minimum is None:
        minimum = MIN_THRESHOLD
    if maximum is None:
        maximum = MAX_THRESHOLD
    if step is None:
        step = THRESHOLD_STEP

    if step <= 0.0:
        raise ValueError(f"Threshold step must be positive, got {step}")

    thresholds: List[float] = []
    i = 0
    while True:
        threshold = round(minimum + step * i, 3)
        thresholds.append(threshold)
        if threshold >= maximum:
            break
        i += 1
    return thresholds


@dataclass
class VerificationStats:
    """Accepted/rejected probe counts per decision threshold.

    Attributes:
        positive_counts: threshold -> number of accepted probes
        negative_counts: threshold -> number of rejected probes
    """
    positive_counts: Dict[float, int] = field(default_factory=dict)
    negative_counts: Dict[float, int] = field(default_factory=dict)

    def record(self, threshold: float, accepted: bool) -> None:
        counts = self.positive_counts if accepted else self.negative_counts
        counts[threshold] = counts.get(threshold, 0) + 1

    def record_score(self,
                     score: Score,
                     thresholds: Sequence[float],
                     weights: Optional[AreaThresholdWeights] = None) -> None:
        """Decide one scored probe at every threshold."""
        for threshold in thresholds:
            self.record(threshold, score.check(threshold, weights))

    def merge(self, other: VerificationStats) -> None:
        """Add the counts of another stats object (e.g. from another identity)."""
        for threshold, count in other.positive_counts.items():
            self.positive_counts[threshold] = self.positive_counts.get(threshold, 0) + count
        for threshold, count in other.negative_counts.items():
            self.negative_counts[threshold] = self.negative_counts.get(threshold, 0) + count

    def count(self, threshold: float) -> int:
        return self.positive_counts.get(threshold, 0) + self.negative_counts.get(threshold, 0)

    def acceptance_rate(self, threshold: float) -> float:
        """Share of probes accepted at ``threshold`` (0.0 when none were seen)."""
        total = self.count(threshold)
        if total == 0:
            return 0.0
        return self.positive_counts.get(threshold, 0) / total

    def rejection_rate(self, threshold: float) -> float:
        """Share of probes rejected at ``threshold`` (0.0 when none were seen)."""
        total = self.count(threshold)
        if total == 0:
            return 0.0
        return self.negative_counts.get(threshold, 0) / total


def verify_samples(template: Template,
                   samples: Iterable[Sample],
                   thresholds: Sequence[float],
                   weights: Optional[AreaThresholdWeights] = None,
                   stats: Optional[VerificationStats] = None) -> VerificationStats:
    """Score every probe against ``template`` and record its decisions.

    Args:
        template: Enrolled (and curated) template
        samples: Preprocessed probe samples
        thresholds: Decision thresholds, typically from threshold_range()
        weights: Per-area threshold weights (default 1.0)
        stats: Stats to add to (a new one if None)

    Returns:
        The updated VerificationStats
    """
    if stats is None:
        stats = VerificationStats()

    for sample in samples:
        score, _ = template.score(sample)
        stats.record_score(score, thresholds, weights)
        logger.debug("probe %r scored %r", sample, score)

    return stats
