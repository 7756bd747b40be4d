"""
Analysis run orchestration.

The InsightEngine owns the read-only catalogs (signal categories, rule
table, insight templates, simulation heuristics). They are validated once
when the engine is built, normally at process start, and then shared by any
number of concurrent runs; a malformed catalog raises ConfigurationError
before the first run.

A run moves through a fixed state machine:

    idle -> normalizing -> extracting -> aggregating -> classifying
         -> synthesizing -> complete

with `failed` reachable from every working state and `simulating` as an
independent branch used by `simulate`. Stages run sequentially; only
extraction fans out, bounded by AnalysisConfig.concurrencyLimit.

Operations:
- run_analysis(records, config) -> AnalysisResult
- run_analysis_from_sources(sources, config) -> AnalysisResult
- simulate(observation) -> SimulationResult
- classify(feature_vector) -> Scenario

Only EmptyInputError and ConfigurationError reach callers; per-record,
per-source and per-template problems are absorbed into the diagnostic report
and the logs.
"""

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, FrozenSet, List, Optional, Sequence
from uuid import uuid4

from insight_engine.core.config import Settings, get_settings
from insight_engine.core.exceptions import EmptyInputError
from insight_engine.models import (
    AnalysisConfig,
    AnalysisResult,
    FeatureVector,
    Observation,
    RawRecord,
    RunState,
    Scenario,
    SimulationResult,
    StateTransition,
)
from insight_engine.services.aggregation import aggregate_features
from insight_engine.services.classification import RuleTable, get_default_rule_table
from insight_engine.services.classification import classify as classify_features
from insight_engine.services.insights import (
    INSIGHT_TEMPLATES,
    InsightTemplate,
    SynthesisContext,
    synthesize_insights,
    validate_templates,
)
from insight_engine.services.meta_analysis import analyze_history
from insight_engine.services.normalizer import normalize_batch
from insight_engine.services.signals import (
    SIGNAL_CATEGORIES,
    PatternCategory,
    extract_signals_batch,
    validate_categories,
)
from insight_engine.services.simulation import (
    CHALLENGE_HEURISTICS,
    PROACTIVE_HEURISTICS,
    Heuristic,
    simulate_batch,
)
from insight_engine.services.simulation import simulate as simulate_observation
from insight_engine.services.sources import RecordSource, fetch_records


logger = logging.getLogger(__name__)


# =============================================================================
# Run State Machine
# =============================================================================

WORKING_STATES: FrozenSet[RunState] = frozenset({
    RunState.NORMALIZING,
    RunState.EXTRACTING,
    RunState.AGGREGATING,
    RunState.CLASSIFYING,
    RunState.SYNTHESIZING,
    RunState.SIMULATING,
})

ALLOWED_TRANSITIONS: Dict[RunState, FrozenSet[RunState]] = {
    RunState.IDLE: frozenset({RunState.NORMALIZING, RunState.SIMULATING}),
    RunState.NORMALIZING: frozenset({RunState.EXTRACTING, RunState.FAILED}),
    RunState.EXTRACTING: frozenset({RunState.AGGREGATING, RunState.FAILED}),
    RunState.AGGREGATING: frozenset({RunState.CLASSIFYING, RunState.FAILED}),
    RunState.CLASSIFYING: frozenset({RunState.SYNTHESIZING, RunState.FAILED}),
    RunState.SYNTHESIZING: frozenset({RunState.COMPLETE, RunState.FAILED}),
    RunState.SIMULATING: frozenset({RunState.COMPLETE, RunState.FAILED}),
    RunState.COMPLETE: frozenset(),
    RunState.FAILED: frozenset(),
}


class AnalysisRun:
    """
    Bookkeeping for one run: its id, as-of time and state history.

    Raises RuntimeError on a transition the state machine does not allow.
    """

    def __init__(self, run_id: Optional[str] = None, as_of: Optional[datetime] = None):
        self.run_id = run_id or str(uuid4())
        self.as_of = _as_utc(as_of) if as_of else datetime.now(timezone.utc)
        self.state = RunState.IDLE
        self.transitions: List[StateTransition] = [
            StateTransition(state=RunState.IDLE, at=datetime.now(timezone.utc))
        ]

    def advance(self, state: RunState) -> None:
        if state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Run {self.run_id}: illegal transition {self.state.value} -> {state.value}"
            )
        self.state = state
        self.transitions.append(StateTransition(state=state, at=datetime.now(timezone.utc)))
        logger.info(f"Run {self.run_id}: {state.value}")

    def fail(self) -> None:
        if self.state in WORKING_STATES:
            self.advance(RunState.FAILED)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# Engine
# =============================================================================


class InsightEngine:
    """
    Validated catalogs plus the operations that use them.

    Args:
        rule_table: Classification rules (defaults to the built-in table)
        templates: Insight template catalog
        categories: Signal category table
        challenge_heuristics: Simulator heuristics matched against challenges
        proactive_heuristics: Simulator heuristics matched against success factors
        settings: Settings for windows, thresholds and defaults

    Raises:
        ConfigurationError: If any catalog is malformed
    """

    def __init__(
        self,
        rule_table: Optional[RuleTable] = None,
        templates: Sequence[InsightTemplate] = INSIGHT_TEMPLATES,
        categories: Sequence[PatternCategory] = SIGNAL_CATEGORIES,
        challenge_heuristics: Sequence[Heuristic] = CHALLENGE_HEURISTICS,
        proactive_heuristics: Sequence[Heuristic] = PROACTIVE_HEURISTICS,
        settings: Optional[Settings] = None,
    ):
        validate_categories(categories)
        validate_templates(templates)

        self.settings = settings or get_settings()
        self.rule_table = rule_table or get_default_rule_table()
        self.templates = tuple(templates)
        self.categories = tuple(categories)
        self.challenge_heuristics = tuple(challenge_heuristics)
        self.proactive_heuristics = tuple(proactive_heuristics)

        logger.info(
            f"Insight engine ready: {len(self.categories)} signal categories, "
            f"{len(self.rule_table.rules)} rules, {len(self.templates)} templates"
        )

    # -------------------------------------------------------------------------
    # On-demand operations
    # -------------------------------------------------------------------------

    def classify(self, feature_vector: FeatureVector) -> Scenario:
        return classify_features(feature_vector, self.rule_table)

    def simulate(self, observation: Observation) -> SimulationResult:
        """
        Run the counterfactual simulation for one Observation.

        Raises:
            ValidationError: If the Observation has no usable baseline efficiency
        """
        run = AnalysisRun()
        run.advance(RunState.SIMULATING)
        try:
            result = simulate_observation(
                observation, self.challenge_heuristics, self.proactive_heuristics
            )
        except Exception:
            run.fail()
            raise
        run.advance(RunState.COMPLETE)
        return result

    # -------------------------------------------------------------------------
    # Full runs
    # -------------------------------------------------------------------------

    async def run_analysis(
        self,
        records: Sequence[RawRecord],
        config: Optional[AnalysisConfig] = None,
        as_of: Optional[datetime] = None,
    ) -> AnalysisResult:
        """
        Analyze a batch of raw records.

        Args:
            records: Raw records in input order
            config: Per-run configuration (defaults from Settings)
            as_of: Reference time for recency windows and default timestamps

        Returns:
            AnalysisResult with the scenario, ranked insights, feature vector,
            meta analysis and diagnostic report

        Raises:
            EmptyInputError: If no record survives normalization
        """
        return await self._run(records, config or AnalysisConfig(), as_of)

    async def run_analysis_from_sources(
        self,
        sources: Sequence[RecordSource],
        config: Optional[AnalysisConfig] = None,
        as_of: Optional[datetime] = None,
    ) -> AnalysisResult:
        """
        Fetch every source under the run's timeout, then analyze the records.

        Timed-out and failed sources contribute zero records and are listed in
        the report.
        """
        config = config or AnalysisConfig()
        records, timed_out, failed = await fetch_records(sources, config.sourceTimeoutMs)
        return await self._run(records, config, as_of, timed_out=timed_out, failed=failed)

    async def _run(
        self,
        records: Sequence[RawRecord],
        config: AnalysisConfig,
        as_of: Optional[datetime],
        timed_out: Sequence[str] = (),
        failed: Sequence[str] = (),
    ) -> AnalysisResult:
        run = AnalysisRun(as_of=as_of)
        logger.info(f"Starting run {run.run_id} over {len(records)} records")

        try:
            run.advance(RunState.NORMALIZING)
            observations, report = normalize_batch(records, run.as_of)
            report = report.model_copy(
                update={"timedOutSources": list(timed_out), "failedSources": list(failed)}
            )
            if not observations:
                raise EmptyInputError(report)

            run.advance(RunState.EXTRACTING)
            signals = await extract_signals_batch(
                observations,
                example_cap=config.exampleCap,
                concurrency_limit=config.concurrencyLimit,
                categories=self.categories,
            )

            run.advance(RunState.AGGREGATING)
            names = [c.name for c in self.categories]
            feature_vector = aggregate_features(
                observations, signals, run.as_of, categories=names, settings=self.settings
            )
            meta = analyze_history(
                observations,
                signals,
                config.phaseCount,
                settings=self.settings,
                categories=self.categories,
            )

            run.advance(RunState.CLASSIFYING)
            scenario = self.classify(feature_vector)

            run.advance(RunState.SYNTHESIZING)
            simulations = simulate_batch(
                observations, self.challenge_heuristics, self.proactive_heuristics
            )
            ctx = SynthesisContext(
                scenario=scenario,
                feature_vector=feature_vector,
                meta=meta,
                observations=tuple(observations),
                signals=tuple(tuple(s) for s in signals),
                simulations=tuple(simulations),
                as_of=run.as_of,
                recent_window_hours=self.settings.recent_window_hours,
            )
            insights = synthesize_insights(ctx, self.templates, config.maxInsights)

            run.advance(RunState.COMPLETE)
        except EmptyInputError:
            logger.error(f"Run {run.run_id} failed: no valid observations")
            run.fail()
            raise
        except Exception:
            logger.exception(f"Run {run.run_id} failed")
            run.fail()
            raise

        return AnalysisResult(
            runId=run.run_id,
            state=run.state,
            asOf=run.as_of,
            scenario=scenario,
            insights=insights,
            simulations=simulations,
            featureVector=feature_vector,
            metaAnalysis=meta,
            report=report,
            transitions=run.transitions,
        )


# =============================================================================
# Module-level Operations
# =============================================================================


@lru_cache()
def get_engine() -> InsightEngine:
    """Return the process-wide engine built from the built-in catalogs."""
    return InsightEngine()


async def run_analysis(
    records: Sequence[RawRecord],
    config: Optional[AnalysisConfig] = None,
    as_of: Optional[datetime] = None,
) -> AnalysisResult:
    return await get_engine().run_analysis(records, config, as_of)


async def run_analysis_from_sources(
    sources: Sequence[RecordSource],
    config: Optional[AnalysisConfig] = None,
    as_of: Optional[datetime] = None,
) -> AnalysisResult:
    return await get_engine().run_analysis_from_sources(sources, config, as_of)


def simulate(observation: Observation) -> SimulationResult:
    return get_engine().simulate(observation)


def classify(feature_vector: FeatureVector) -> Scenario:
    return get_engine().classify(feature_vector)


__all__ = [
    "ALLOWED_TRANSITIONS",
    "AnalysisRun",
    "InsightEngine",
    "get_engine",
    "run_analysis",
    "run_analysis_from_sources",
    "simulate",
    "classify",
]
