"""
Meta-Aggregator.

Looks at the observation history as a whole rather than as a batch:

- Phases: the chronologically sorted Observations are split into
  `phase_count` contiguous phases whose sizes differ by at most one. Each
  phase sums the signal categories of its Observations and scores growth as
  min(100, total * scale_factor).
- Alignment: each category's weighted signal volume, normalized against the
  strongest category to [0, 100].
- Consistency: the rounded mean of the alignment values.
- Trajectory: Exponential from 80, Strong from 60, otherwise Developing.
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from insight_engine.core.config import Settings, get_settings
from insight_engine.models import (
    GrowthTrajectory,
    MetaAnalysis,
    Observation,
    Phase,
    SignalCount,
)
from insight_engine.services.signals import (
    SIGNAL_CATEGORIES,
    PatternCategory,
    category_names,
    category_weights,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

PHASE_LABELS: Tuple[str, ...] = (
    "Foundation Building",
    "Strategic Development",
    "Advanced Integration",
)

EXPONENTIAL_THRESHOLD = 80
STRONG_THRESHOLD = 60


# =============================================================================
# Phases
# =============================================================================


def phase_label(index: int) -> str:
    if index < len(PHASE_LABELS):
        return PHASE_LABELS[index]
    return f"Phase {index + 1}"


def segment_phases(
    observations: Sequence[Observation],
    signals: Sequence[Sequence[SignalCount]],
    phase_count: int,
    scale_factor: int,
    categories: Optional[Sequence[str]] = None,
) -> List[Phase]:
    """
    Split the history into chronological phases.

    Args:
        observations: Observations in any order
        signals: Per-Observation signals, index-aligned with observations
        phase_count: Number of phases requested
        scale_factor: Growth score points per signal
        categories: Category names to sum (defaults to the built-in table)

    Returns:
        Non-empty phases in chronological order; fewer than `phase_count`
        when there are fewer Observations than phases
    """
    categories = list(categories) if categories is not None else category_names()
    order = sorted(
        range(len(observations)),
        key=lambda i: (observations[i].timestamp, observations[i].id),
    )

    phases: List[Phase] = []
    chunks = [c for c in np.array_split(np.array(order, dtype=np.int64), max(1, phase_count)) if len(c)]

    for index, chunk in enumerate(chunks):
        members = [int(i) for i in chunk]
        sums: Dict[str, int] = {name: 0 for name in categories}
        for i in members:
            for signal in signals[i]:
                if signal.category in sums:
                    sums[signal.category] += signal.count

        total = sum(sums.values())
        phases.append(Phase(
            label=phase_label(index),
            periodStart=observations[members[0]].timestamp,
            periodEnd=observations[members[-1]].timestamp,
            observationCount=len(members),
            indicatorSums=sums,
            growthScore=min(100, total * scale_factor),
        ))

    return phases


# =============================================================================
# Alignment and Consistency
# =============================================================================


def compute_alignment(
    category_counts: Mapping[str, int],
    weights: Optional[Mapping[str, int]] = None,
) -> Dict[str, int]:
    """Weighted category volume normalized against the strongest category."""
    weights = weights or category_weights()
    scores = {name: count * weights.get(name, 10) for name, count in category_counts.items()}
    max_score = max(max(scores.values(), default=0), 1)
    return {
        name: min(100, round(score / max_score * 100))
        for name, score in scores.items()
    }


def consistency_score(alignment: Mapping[str, int]) -> int:
    if not alignment:
        return 0
    return int(round(float(np.mean(list(alignment.values())))))


def growth_trajectory(score: int) -> GrowthTrajectory:
    if score >= EXPONENTIAL_THRESHOLD:
        return GrowthTrajectory.EXPONENTIAL
    if score >= STRONG_THRESHOLD:
        return GrowthTrajectory.STRONG
    return GrowthTrajectory.DEVELOPING


def analyze_history(
    observations: Sequence[Observation],
    signals: Sequence[Sequence[SignalCount]],
    phase_count: int,
    settings: Optional[Settings] = None,
    categories: Sequence[PatternCategory] = SIGNAL_CATEGORIES,
) -> MetaAnalysis:
    """
    Run the full meta analysis for one run.

    Args:
        observations: All Observations of the run
        signals: Per-Observation signals, index-aligned with observations
        phase_count: Number of chronological phases
        settings: Settings providing the growth scale factor
        categories: Category table supplying names and alignment weights

    Returns:
        MetaAnalysis with phases, alignment, consistency and trajectory
    """
    settings = settings or get_settings()
    names = category_names(categories)

    totals: Dict[str, int] = {name: 0 for name in names}
    for observation_signals in signals:
        for signal in observation_signals:
            if signal.category in totals:
                totals[signal.category] += signal.count

    alignment = compute_alignment(totals, category_weights(categories))
    score = consistency_score(alignment)

    meta = MetaAnalysis(
        phases=segment_phases(
            observations, signals, phase_count, settings.growth_scale_factor, names
        ),
        alignment=alignment,
        consistencyScore=score,
        growthTrajectory=growth_trajectory(score),
    )

    logger.info(
        f"Meta analysis: {len(meta.phases)} phases, consistency {score} "
        f"({meta.growthTrajectory.value})"
    )
    return meta


__all__ = [
    "PHASE_LABELS",
    "phase_label",
    "segment_phases",
    "compute_alignment",
    "consistency_score",
    "growth_trajectory",
    "analyze_history",
]
