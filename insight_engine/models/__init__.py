"""
Package initialization file for the engine models.

Re-exports every enum and pydantic schema so callers can write:

    from insight_engine.models import Observation, Insight, RunState
"""

from insight_engine.models.enums import (
    SourceType,
    ActivityLevel,
    Impact,
    InsightCategory,
    InsightSource,
    RunState,
    GrowthTrajectory,
)

from insight_engine.models.schemas import (
    RawRecord,
    Observation,
    SignalCount,
    FeatureVector,
    RuleCondition,
    ScenarioParams,
    ScenarioRule,
    Scenario,
    InsightMetadata,
    Insight,
    SimulationResult,
    Phase,
    MetaAnalysis,
    AnalysisConfig,
    RecordRejection,
    DiagnosticReport,
    StateTransition,
    AnalysisResult,
    AnalysisRunRequest,
    SimulationRequest,
)

__all__ = [
    # Enums
    "SourceType",
    "ActivityLevel",
    "Impact",
    "InsightCategory",
    "InsightSource",
    "RunState",
    "GrowthTrajectory",
    # Schemas
    "RawRecord",
    "Observation",
    "SignalCount",
    "FeatureVector",
    "RuleCondition",
    "ScenarioParams",
    "ScenarioRule",
    "Scenario",
    "InsightMetadata",
    "Insight",
    "SimulationResult",
    "Phase",
    "MetaAnalysis",
    "AnalysisConfig",
    "RecordRejection",
    "DiagnosticReport",
    "StateTransition",
    "AnalysisResult",
    "AnalysisRunRequest",
    "SimulationRequest",
]
