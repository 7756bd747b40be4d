"""
Enumeration definitions for the Insight Engine.

All enums inherit from both `str` and `Enum` so pydantic models serialize
them as plain strings on the wire.
"""

from enum import Enum


class SourceType(str, Enum):
    """
    Origin of a raw record.

    The Record Normalizer keeps one field map per source type; unknown tags
    fall back to GENERIC.
    """
    CONVERSATION = "conversation"
    JOURNAL = "journal"
    MODULE_ACTIVITY = "module_activity"
    DREAMSTATE_SESSION = "dreamstate_session"
    TENANT = "tenant"
    GENERIC = "generic"


class ActivityLevel(str, Enum):
    """
    Three-tier activity classification.

    - high: recent observation count above the high threshold (default 5)
    - medium: above the medium threshold (default 2)
    - low: everything else, including no observations at all
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Impact(str, Enum):
    """Impact rating attached to every Insight."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class InsightCategory(str, Enum):
    """Category of a synthesized Insight."""
    SYSTEM_EVOLUTION = "system-evolution"
    DEVELOPER_INSIGHTS = "developer-insights"
    MODULE_ANALYSIS = "module-analysis"
    REPOSITORY_UPDATES = "repository-updates"
    DECISION_MAKING = "decision-making"
    ECOSYSTEM_HEALTH = "ecosystem-health"
    DREAMSTATE_PREDICTION = "dreamstate-prediction"


class InsightSource(str, Enum):
    """Which part of the evidence an Insight was derived from."""
    MODULE_REGISTRY = "module-registry"
    DEVELOPER_ACTIVITY = "developer-activity"
    REPOSITORY_ANALYSIS = "repository-analysis"
    CADIS_MEMORY = "cadis-memory"
    DREAMSTATE = "dreamstate"
    SYSTEM_REFLECTION = "system-reflection"


class RunState(str, Enum):
    """
    Analysis run lifecycle.

    idle -> normalizing -> extracting -> aggregating -> classifying ->
    synthesizing -> complete. SIMULATING is an independent on-demand branch;
    FAILED is entered only on run-fatal errors.
    """
    IDLE = "idle"
    NORMALIZING = "normalizing"
    EXTRACTING = "extracting"
    AGGREGATING = "aggregating"
    CLASSIFYING = "classifying"
    SYNTHESIZING = "synthesizing"
    COMPLETE = "complete"
    SIMULATING = "simulating"
    FAILED = "failed"


class GrowthTrajectory(str, Enum):
    """Trajectory label derived from the consistency score (>=80, >=60, else)."""
    DEVELOPING = "Developing"
    STRONG = "Strong"
    EXPONENTIAL = "Exponential"


__all__ = [
    "SourceType",
    "ActivityLevel",
    "Impact",
    "InsightCategory",
    "InsightSource",
    "RunState",
    "GrowthTrajectory",
]
