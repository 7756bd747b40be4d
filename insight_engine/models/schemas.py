"""
Pydantic models for the Insight Engine.

These are both the internal records passed between pipeline stages and the
wire shapes returned by the API. Field names are camelCase because Insight
and SimulationResult objects are consumed verbatim by the presentation layer
and the persisted journal.

Groups:
- Input: RawRecord, Observation
- Signals and features: SignalCount, FeatureVector
- Classification: RuleCondition, ScenarioParams, ScenarioRule, Scenario
- Output: InsightMetadata, Insight, SimulationResult
- Meta analysis: Phase, MetaAnalysis
- Run bookkeeping: AnalysisConfig, RecordRejection, DiagnosticReport,
  StateTransition, AnalysisResult
- API requests: AnalysisRunRequest, SimulationRequest

All models use Pydantic v2 syntax.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from insight_engine.core.config import get_settings
from insight_engine.models.enums import (
    ActivityLevel,
    GrowthTrajectory,
    Impact,
    InsightCategory,
    InsightSource,
    RunState,
    SourceType,
)


# =============================================================================
# Input Models
# =============================================================================


class RawRecord(BaseModel):
    """
    One source-specific record plus the tag naming its source.

    The payload shape is arbitrary; the Record Normalizer decides which keys
    matter for the given source.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "source": "conversation",
                "data": {
                    "id": "conv-001",
                    "title": "Payment gateway integration",
                    "date": "2026-09-30T14:00:00Z",
                    "challenges": ["TypeScript compilation errors"],
                    "efficiency": 87.3,
                },
            }
        }
    )

    source: str = Field(
        default=SourceType.GENERIC.value,
        description="Source tag (conversation, journal, module_activity, dreamstate_session, tenant, generic)"
    )
    data: Dict[str, Any] = Field(
        default_factory=dict,
        description="Source-specific payload"
    )


class Observation(BaseModel):
    """
    Canonical, source-independent view of one input record.

    Immutable once constructed. `text` is the concatenation of every
    free-text field the source provides.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Record identifier")
    source: SourceType = Field(..., description="Normalized source tag")
    timestamp: datetime = Field(..., description="When the record was produced")
    text: str = Field(default="", description="Concatenated free text")
    tags: List[str] = Field(default_factory=list)
    participants: List[str] = Field(default_factory=list)
    metrics: Dict[str, float] = Field(default_factory=dict)
    challenges: List[str] = Field(default_factory=list)
    successFactors: List[str] = Field(default_factory=list)

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# =============================================================================
# Signals and Features
# =============================================================================


class SignalCount(BaseModel):
    """Matches of one pattern category in one Observation."""
    model_config = ConfigDict(frozen=True)

    category: str
    count: int = Field(default=0, ge=0)
    examples: List[str] = Field(default_factory=list)


class FeatureVector(BaseModel):
    """
    Aggregate features of one analysis batch.

    Field names form the fixed feature namespace referenced by the
    classification rule table. Dict-valued features are addressed with a
    dotted path, e.g. `categoryFrequencies.execution`.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "totalObservations": 12,
                "totalSignals": 48,
                "categoryCounts": {"execution": 20, "modularity": 28},
                "categoryFrequencies": {"execution": 42, "modularity": 58},
                "activityLevel": "medium",
                "tenantCount": 2,
                "dreamStateEffectiveness": 65,
            }
        }
    )

    totalObservations: int = Field(default=0, ge=0)
    totalSignals: int = Field(default=0, ge=0)
    categoryCounts: Dict[str, int] = Field(default_factory=dict)
    categoryFrequencies: Dict[str, int] = Field(default_factory=dict)
    activityLevel: ActivityLevel = ActivityLevel.LOW
    recentObservationCount: int = Field(default=0, ge=0)
    timeBuckets: Dict[str, int] = Field(default_factory=dict)
    sourceCounts: Dict[str, int] = Field(default_factory=dict)
    tenantCount: int = Field(default=0, ge=0)
    dreamStateEffectiveness: int = Field(default=0, ge=0, le=100)
    moduleActivity: ActivityLevel = ActivityLevel.LOW
    journalInsightCount: int = Field(default=0, ge=0)
    recentSessionCount: int = Field(default=0, ge=0)
    averageEfficiency: float = 0.0
    averageSatisfaction: float = 0.0


# =============================================================================
# Classification Models
# =============================================================================


class RuleCondition(BaseModel):
    """One comparison `feature <operator> value` inside a ScenarioRule."""
    model_config = ConfigDict(frozen=True)

    feature: str = Field(..., description="Feature name or dotted path")
    operator: str = Field(..., description="One of >, >=, <, <=, ==, !=")
    value: Union[int, float, str]

    def describe(self) -> str:
        return f"{self.feature} {self.operator} {self.value!r}"


class ScenarioParams(BaseModel):
    """Parameters a Scenario hands to the synthesis stage."""
    model_config = ConfigDict(frozen=True)

    analysisDepth: int = Field(..., ge=1)
    targetInsightCount: int = Field(..., ge=1)
    focusAreas: List[str] = Field(default_factory=list)


class ScenarioRule(BaseModel):
    """
    Data-driven classification rule.

    The predicate is the conjunction of `conditions`; a rule without
    conditions always matches and is therefore only useful as the default.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    priority: int
    conditions: List[RuleCondition] = Field(default_factory=list)
    params: ScenarioParams
    reasoning: str = Field(default="", description="Explanation template; {featureName} placeholders are filled from the FeatureVector")


class Scenario(BaseModel):
    """Outcome of classifying one FeatureVector."""
    model_config = ConfigDict(frozen=True)

    id: str
    priority: int
    params: ScenarioParams
    reasoning: str = ""
    matchedConditions: List[str] = Field(default_factory=list)
    isDefault: bool = False


# =============================================================================
# Output Models
# =============================================================================


class InsightMetadata(BaseModel):
    """Provenance block carried by every Insight."""
    analysisType: str
    dataPoints: int = Field(default=0, ge=0)
    correlations: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(..., min_length=1)


class Insight(BaseModel):
    """
    One synthesized, confidence-scored finding.

    This is the exact structure persisted to the journal and rendered by the
    presentation layer.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Counterfactual Opportunity: 2 Sessions Could Run Faster",
                "category": "dreamstate-prediction",
                "source": "dreamstate",
                "confidence": 86,
                "impact": "high",
                "content": "Applying 3 proven approaches up front would have saved 45 minutes.",
                "metadata": {
                    "analysisType": "counterfactual_simulation",
                    "dataPoints": 2,
                    "correlations": ["challenge_frequency", "time_saved"],
                    "recommendations": ["Pre-validate TypeScript types before implementation"],
                },
                "simulationNodes": ["Baseline efficiency 87.3", "Projected efficiency 99.3"],
            }
        }
    )

    title: str
    category: InsightCategory
    source: InsightSource
    confidence: int = Field(..., ge=0, le=100)
    impact: Impact
    content: str
    metadata: InsightMetadata
    simulationNodes: Optional[List[str]] = None


class SimulationResult(BaseModel):
    """
    Deterministic what-if projection for one historical Observation.

    `projectedEfficiency` never drops below the baseline and never exceeds 100.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "observationId": "conv-001",
                "baselineEfficiency": 87.3,
                "projectedEfficiency": 99.3,
                "matchedHeuristics": ["typescript compilation", "api authentication"],
                "timeSavedMinutes": 30,
                "improvements": [
                    "Pre-validate TypeScript types before implementation",
                    "Implement authentication testing framework first",
                ],
                "timeSavedLabel": "30 minutes",
                "confidenceLevel": 0.97,
            }
        }
    )

    observationId: str
    baselineEfficiency: float = Field(..., ge=0.0, le=100.0)
    projectedEfficiency: float = Field(..., ge=0.0, le=100.0)
    matchedHeuristics: List[str] = Field(default_factory=list)
    timeSavedMinutes: int = Field(default=0, ge=0)
    improvements: List[str] = Field(default_factory=list)
    timeSavedLabel: str = "0 minutes"
    confidenceLevel: float = Field(default=0.85, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _projection_not_below_baseline(self) -> "SimulationResult":
        if self.projectedEfficiency < self.baselineEfficiency:
            raise ValueError("projectedEfficiency must not be below baselineEfficiency")
        return self


# =============================================================================
# Meta Analysis Models
# =============================================================================


class Phase(BaseModel):
    """One chronological slice of the observation history."""
    model_config = ConfigDict(frozen=True)

    label: str
    periodStart: datetime
    periodEnd: datetime
    observationCount: int = Field(..., ge=1)
    indicatorSums: Dict[str, int] = Field(default_factory=dict)
    growthScore: int = Field(..., ge=0, le=100)


class MetaAnalysis(BaseModel):
    """Cross-cutting view over the whole observation history."""
    model_config = ConfigDict(frozen=True)

    phases: List[Phase] = Field(default_factory=list)
    alignment: Dict[str, int] = Field(default_factory=dict)
    consistencyScore: int = Field(default=0, ge=0, le=100)
    growthTrajectory: GrowthTrajectory = GrowthTrajectory.DEVELOPING


# =============================================================================
# Run Bookkeeping Models
# =============================================================================


class AnalysisConfig(BaseModel):
    """
    Per-run tuning knobs.

    Defaults come from the process Settings so a deployment can change them
    through the environment without touching callers.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "maxInsights": 10,
                "concurrencyLimit": 4,
                "phaseCount": 3,
                "sourceTimeoutMs": 5000,
                "exampleCap": 3,
            }
        }
    )

    maxInsights: Optional[int] = Field(
        default_factory=lambda: get_settings().max_insights,
        ge=1,
        description="Upper bound on returned insights (unbounded when null)"
    )
    concurrencyLimit: int = Field(
        default_factory=lambda: get_settings().concurrency_limit,
        ge=1,
        description="Maximum concurrent extraction workers"
    )
    phaseCount: int = Field(
        default_factory=lambda: get_settings().phase_count,
        ge=1,
    )
    sourceTimeoutMs: int = Field(
        default_factory=lambda: get_settings().source_timeout_ms,
        ge=1,
    )
    exampleCap: int = Field(
        default_factory=lambda: get_settings().example_cap,
        ge=0,
        description="Matched substrings kept per signal category"
    )


class RecordRejection(BaseModel):
    """Why one raw record was excluded from a run."""
    recordId: str
    source: str
    reason: str


class DiagnosticReport(BaseModel):
    """Summary of what a run saw, excluded, and could not reach."""
    seen: int = Field(default=0, ge=0)
    excluded: int = Field(default=0, ge=0)
    reasonHistogram: Dict[str, int] = Field(default_factory=dict)
    rejections: List[RecordRejection] = Field(default_factory=list)
    timedOutSources: List[str] = Field(default_factory=list)
    failedSources: List[str] = Field(default_factory=list)


class StateTransition(BaseModel):
    """One recorded step of the run state machine."""
    state: RunState
    at: datetime


class AnalysisResult(BaseModel):
    """Everything a completed run produces."""
    runId: str
    state: RunState
    asOf: datetime
    scenario: Scenario
    insights: List[Insight] = Field(default_factory=list)
    simulations: List[SimulationResult] = Field(default_factory=list)
    featureVector: FeatureVector
    metaAnalysis: MetaAnalysis
    report: DiagnosticReport
    transitions: List[StateTransition] = Field(default_factory=list)


# =============================================================================
# API Request Models
# =============================================================================


class AnalysisRunRequest(BaseModel):
    """Body of POST /analysis/run."""
    records: List[RawRecord] = Field(default_factory=list)
    config: Optional[AnalysisConfig] = None
    asOf: Optional[datetime] = Field(
        default=None,
        description="Reference time for recency windows (defaults to now)"
    )
    persist: bool = Field(
        default=False,
        description="Persist the synthesized insights after the run completes"
    )


class SimulationRequest(BaseModel):
    """Body of POST /analysis/simulate."""
    observation: Observation
    persist: bool = False


__all__ = [
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
