"""
Feature Aggregator.

Reduces a batch of Observations and their per-Observation signals into one
FeatureVector. The reduction is commutative: the same multiset of inputs
yields the same vector regardless of order.

Features:
- categoryCounts: per-category sum of signal counts (conserved exactly)
- categoryFrequencies: integer share of total signal volume, 0 when empty
- activityLevel: three-tier level of the recent Observation count
- timeBuckets: Observation counts per fixed-width bucket counted back from
  the as-of time, keyed by bucket start date
- tenantCount: distinct tenant tags
- dreamStateEffectiveness: round((completionRate + min(100, avgNodes * 4)) / 2)
  over DreamState sessions in the session window, 0 without sessions
- recentSessionCount: DreamState sessions in the session window
- moduleActivity: activity level of module activity in the recent window
- journalInsightCount: journal Observations in the journal window
- averageEfficiency / averageSatisfaction: means of present metrics

Every recency feature uses exactly one configurable window (see Settings).
"""

import logging
import math
from collections import Counter
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

import numpy as np

from insight_engine.core.config import Settings, get_settings
from insight_engine.models import (
    ActivityLevel,
    FeatureVector,
    Observation,
    SignalCount,
    SourceType,
)
from insight_engine.services.signals import category_names


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

TENANT_TAG_PREFIX = "tenant:"
COMPLETED_STATUS_TAG = "status:completed"

# Average node count that maps to full node efficiency
NODE_EFFICIENCY_MULTIPLIER = 4


# =============================================================================
# Helper Functions
# =============================================================================


def classify_activity(count: int, high_threshold: int, medium_threshold: int) -> ActivityLevel:
    """
    Map a recent count onto the three activity tiers.

    Thresholds are strict: a count equal to the high threshold is medium.
    """
    if count > high_threshold:
        return ActivityLevel.HIGH
    if count > medium_threshold:
        return ActivityLevel.MEDIUM
    return ActivityLevel.LOW


def _count_within(
    observations: Sequence[Observation],
    as_of: datetime,
    window: timedelta,
) -> int:
    cutoff = as_of - window
    return sum(1 for o in observations if o.timestamp >= cutoff)


def _of_source(observations: Sequence[Observation], source: SourceType) -> List[Observation]:
    return [o for o in observations if o.source == source]


def _metric_mean(observations: Sequence[Observation], metric: str) -> float:
    values = [o.metrics[metric] for o in observations if metric in o.metrics]
    if not values:
        return 0.0
    return float(np.mean(values))


def compute_time_buckets(
    observations: Sequence[Observation],
    as_of: datetime,
    width_days: int,
) -> Dict[str, int]:
    """
    Count Observations per bucket, oldest bucket first.

    Bucket 0 covers (as_of - width, as_of]; Observations dated after the
    as-of time fall into bucket 0.
    """
    width_seconds = width_days * 86400
    counts: Counter = Counter()
    for observation in observations:
        age = (as_of - observation.timestamp).total_seconds()
        index = math.floor(age / width_seconds) if age > 0 else 0
        counts[index] += 1

    buckets: Dict[str, int] = {}
    for index in sorted(counts, reverse=True):
        start = as_of - timedelta(days=width_days * (index + 1))
        buckets[start.date().isoformat()] = counts[index]
    return buckets


def compute_dreamstate_effectiveness(sessions: Sequence[Observation]) -> int:
    """
    Score DreamState sessions by completion rate and node depth.

    Returns:
        Integer in [0, 100]; 0 when there are no sessions
    """
    if not sessions:
        return 0

    completed = sum(1 for s in sessions if COMPLETED_STATUS_TAG in s.tags)
    completion_rate = completed / len(sessions) * 100
    avg_nodes = float(np.mean([s.metrics.get("totalNodes", 0.0) for s in sessions]))
    node_efficiency = min(100.0, avg_nodes * NODE_EFFICIENCY_MULTIPLIER)

    return max(0, min(100, round((completion_rate + node_efficiency) / 2)))


# =============================================================================
# Aggregation
# =============================================================================


def aggregate_features(
    observations: Sequence[Observation],
    signals: Sequence[Sequence[SignalCount]],
    as_of: datetime,
    categories: Optional[Sequence[str]] = None,
    settings: Optional[Settings] = None,
) -> FeatureVector:
    """
    Build the FeatureVector for one batch.

    Args:
        observations: Observations of the batch
        signals: Per-Observation signal lists, index-aligned with observations
        as_of: Reference time for every recency window
        categories: Category names, in table order (defaults to the built-in table)
        settings: Settings providing windows and thresholds

    Returns:
        The aggregated FeatureVector
    """
    settings = settings or get_settings()
    categories = list(categories) if categories is not None else category_names()

    # Category sums: rows are observations, columns follow `categories`
    column = {name: i for i, name in enumerate(categories)}
    matrix = np.zeros((len(signals), len(categories)), dtype=np.int64)
    for row, observation_signals in enumerate(signals):
        for signal in observation_signals:
            if signal.category in column:
                matrix[row, column[signal.category]] += signal.count

    sums = matrix.sum(axis=0) if len(signals) else np.zeros(len(categories), dtype=np.int64)
    category_counts = {name: int(sums[column[name]]) for name in categories}
    total_signals = int(np.sum(sums))

    if total_signals > 0:
        category_frequencies = {
            name: round(count / total_signals * 100)
            for name, count in category_counts.items()
        }
    else:
        category_frequencies = {name: 0 for name in categories}

    recent_window = timedelta(hours=settings.recent_window_hours)
    recent_count = _count_within(observations, as_of, recent_window)

    module_observations = _of_source(observations, SourceType.MODULE_ACTIVITY)
    module_recent = _count_within(module_observations, as_of, recent_window)

    session_cutoff = as_of - timedelta(days=settings.session_window_days)
    recent_sessions = [
        o for o in _of_source(observations, SourceType.DREAMSTATE_SESSION)
        if o.timestamp >= session_cutoff
    ]

    journal_count = _count_within(
        _of_source(observations, SourceType.JOURNAL),
        as_of,
        timedelta(days=settings.journal_window_days),
    )

    tenants = {
        tag for o in observations for tag in o.tags if tag.startswith(TENANT_TAG_PREFIX)
    }

    feature_vector = FeatureVector(
        totalObservations=len(observations),
        totalSignals=total_signals,
        categoryCounts=category_counts,
        categoryFrequencies=category_frequencies,
        activityLevel=classify_activity(
            recent_count,
            settings.activity_high_threshold,
            settings.activity_medium_threshold,
        ),
        recentObservationCount=recent_count,
        timeBuckets=compute_time_buckets(observations, as_of, settings.bucket_width_days),
        sourceCounts=dict(Counter(o.source.value for o in observations)),
        tenantCount=len(tenants),
        dreamStateEffectiveness=compute_dreamstate_effectiveness(recent_sessions),
        moduleActivity=classify_activity(
            module_recent,
            settings.activity_high_threshold,
            settings.activity_medium_threshold,
        ),
        journalInsightCount=journal_count,
        recentSessionCount=len(recent_sessions),
        averageEfficiency=_metric_mean(observations, "efficiency"),
        averageSatisfaction=_metric_mean(observations, "userSatisfaction"),
    )

    logger.info(
        f"Aggregated {len(observations)} observations: {total_signals} signals, "
        f"activity {feature_vector.activityLevel.value}"
    )
    return feature_vector


__all__ = [
    "classify_activity",
    "compute_time_buckets",
    "compute_dreamstate_effectiveness",
    "aggregate_features",
]
