"""
Pipeline Test Module

End-to-end runs through the InsightEngine: state transitions, empty input,
partial success with a diagnostic report, determinism, configuration
errors at construction, and source timeouts.
"""

import asyncio
from typing import List

import pytest

from insight_engine.core.exceptions import ConfigurationError, EmptyInputError, ValidationError
from insight_engine.models import AnalysisConfig, FeatureVector, RawRecord, RunState
from insight_engine.services.classification import DEFAULT_SCENARIO_ID
from insight_engine.services.insights import INSIGHT_TEMPLATES
from insight_engine.services.pipeline import (
    ALLOWED_TRANSITIONS,
    AnalysisRun,
    InsightEngine,
    classify,
    get_engine,
    run_analysis,
    simulate,
)
from insight_engine.services.signals import PatternCategory
from insight_engine.services.sources import RecordSource, StaticRecordSource


class SlowSource(RecordSource):
    """Source that never answers within a short timeout."""

    name = "slow"

    async def list(self) -> List[RawRecord]:
        await asyncio.sleep(5)
        return []


class UnreachableSource(RecordSource):
    """Source whose backing store refuses connections."""

    name = "unreachable"

    async def list(self) -> List[RawRecord]:
        raise ConnectionRefusedError("could not connect to server")


# =============================================================================
# Run State Machine
# =============================================================================


class TestAnalysisRun:
    """Tests for the run state machine."""

    def test_starts_idle(self) -> None:
        run = AnalysisRun()
        assert run.state == RunState.IDLE
        assert [t.state for t in run.transitions] == [RunState.IDLE]

    def test_illegal_transition(self) -> None:
        run = AnalysisRun()
        with pytest.raises(RuntimeError):
            run.advance(RunState.SYNTHESIZING)

    def test_terminal_states_have_no_exits(self) -> None:
        assert ALLOWED_TRANSITIONS[RunState.COMPLETE] == frozenset()
        assert ALLOWED_TRANSITIONS[RunState.FAILED] == frozenset()

    def test_fail_from_working_state(self) -> None:
        run = AnalysisRun()
        run.advance(RunState.NORMALIZING)
        run.fail()
        assert run.state == RunState.FAILED

    def test_fail_is_noop_when_idle(self) -> None:
        run = AnalysisRun()
        run.fail()
        assert run.state == RunState.IDLE


# =============================================================================
# Full Runs
# =============================================================================


class TestRunAnalysis:
    """Tests for InsightEngine.run_analysis."""

    @pytest.mark.asyncio
    async def test_complete_run(self, sample_records, as_of) -> None:
        result = await InsightEngine().run_analysis(sample_records, as_of=as_of)

        assert result.state == RunState.COMPLETE
        assert [t.state for t in result.transitions] == [
            RunState.IDLE,
            RunState.NORMALIZING,
            RunState.EXTRACTING,
            RunState.AGGREGATING,
            RunState.CLASSIFYING,
            RunState.SYNTHESIZING,
            RunState.COMPLETE,
        ]
        assert result.asOf == as_of
        assert result.featureVector.totalObservations == len(sample_records)
        assert result.report.excluded == 0
        assert result.insights
        assert [s.observationId for s in result.simulations] == ["conv-001"]

    @pytest.mark.asyncio
    async def test_sample_records_classify_as_ecosystem_analysis(self, sample_records, as_of) -> None:
        result = await InsightEngine().run_analysis(sample_records, as_of=as_of)

        # acme, globex and initech; one completed session scoring 90, so the
        # multi-tenant rule fails on effectiveness
        assert result.featureVector.tenantCount == 3
        assert result.featureVector.dreamStateEffectiveness == 90
        assert result.scenario.id == "comprehensive-ecosystem-analysis"

    @pytest.mark.asyncio
    async def test_empty_batch_raises(self, as_of) -> None:
        with pytest.raises(EmptyInputError) as exc_info:
            await InsightEngine().run_analysis([], as_of=as_of)
        assert exc_info.value.report.seen == 0

    @pytest.mark.asyncio
    async def test_all_invalid_batch_raises_with_report(self, as_of) -> None:
        records = [RawRecord(source="journal", data={}), RawRecord(source="tenant", data={})]

        with pytest.raises(EmptyInputError) as exc_info:
            await InsightEngine().run_analysis(records, as_of=as_of)

        report = exc_info.value.report
        assert report.seen == 2
        assert report.excluded == 2

    @pytest.mark.asyncio
    async def test_single_empty_text_record_uses_default_scenario(self, as_of) -> None:
        records = [RawRecord(source="journal", data={"created_at": "2026-09-01T00:00:00Z"})]

        result = await InsightEngine().run_analysis(records, as_of=as_of)

        assert result.state == RunState.COMPLETE
        assert result.scenario.id == DEFAULT_SCENARIO_ID
        assert result.scenario.isDefault is True
        assert result.featureVector.totalSignals == 0
        assert set(result.featureVector.categoryCounts.values()) == {0}

    @pytest.mark.asyncio
    async def test_partial_success_keeps_report(self, sample_records, as_of) -> None:
        records = sample_records + [RawRecord(source="journal", data={"confidence": 1})]

        result = await InsightEngine().run_analysis(records, as_of=as_of)

        assert result.state == RunState.COMPLETE
        assert result.report.seen == len(records)
        assert result.report.excluded == 1
        assert result.insights

    @pytest.mark.asyncio
    async def test_config_limits_insights(self, sample_records, as_of) -> None:
        config = AnalysisConfig(maxInsights=2, concurrencyLimit=1, phaseCount=2)

        result = await InsightEngine().run_analysis(sample_records, config, as_of=as_of)

        assert len(result.insights) == 2
        assert len(result.metaAnalysis.phases) == 2

    @pytest.mark.asyncio
    async def test_runs_are_deterministic(self, sample_records, as_of) -> None:
        engine = InsightEngine()

        first = await engine.run_analysis(sample_records, as_of=as_of)
        second = await engine.run_analysis(sample_records, as_of=as_of)

        assert first.runId != second.runId
        assert first.scenario == second.scenario
        assert first.featureVector == second.featureVector
        assert first.insights == second.insights
        assert first.metaAnalysis == second.metaAnalysis

    @pytest.mark.asyncio
    async def test_concurrent_runs_share_one_engine(self, sample_records, as_of) -> None:
        engine = InsightEngine()

        results = await asyncio.gather(
            *(engine.run_analysis(sample_records, as_of=as_of) for _ in range(4))
        )

        assert len({r.runId for r in results}) == 4
        assert all(r.insights == results[0].insights for r in results)

    @pytest.mark.asyncio
    async def test_module_level_run(self, sample_records, as_of) -> None:
        result = await run_analysis(sample_records, as_of=as_of)
        assert result.state == RunState.COMPLETE


class TestRunFromSources:
    """Tests for InsightEngine.run_analysis_from_sources."""

    @pytest.mark.asyncio
    async def test_timed_out_source_is_reported(self, sample_records, as_of) -> None:
        sources = [StaticRecordSource("memory", sample_records), SlowSource()]
        config = AnalysisConfig(sourceTimeoutMs=50)

        result = await InsightEngine().run_analysis_from_sources(sources, config, as_of=as_of)

        assert result.state == RunState.COMPLETE
        assert result.report.timedOutSources == ["slow"]
        assert result.featureVector.totalObservations == len(sample_records)

    @pytest.mark.asyncio
    async def test_only_timed_out_sources_raises(self, as_of) -> None:
        with pytest.raises(EmptyInputError) as exc_info:
            await InsightEngine().run_analysis_from_sources(
                [SlowSource()], AnalysisConfig(sourceTimeoutMs=20), as_of=as_of
            )
        assert exc_info.value.report.timedOutSources == ["slow"]

    @pytest.mark.asyncio
    async def test_unreachable_source_does_not_abort_run(self, as_of) -> None:
        record = RawRecord(
            source="journal",
            data={"content": "Plan the architecture", "created_at": "2026-09-30T09:00:00Z"},
        )
        sources = [StaticRecordSource("memory", [record]), UnreachableSource()]

        result = await InsightEngine().run_analysis_from_sources(sources, as_of=as_of)

        assert result.state == RunState.COMPLETE
        assert result.featureVector.totalObservations == 1
        assert result.report.failedSources == ["unreachable"]
        assert result.report.timedOutSources == []


# =============================================================================
# On-demand Operations and Construction
# =============================================================================


class TestEngineOperations:
    """Tests for simulate, classify and engine construction."""

    def test_simulate(self, make_observation) -> None:
        obs = make_observation(
            challenges=["TypeScript compilation errors", "API authentication issues"],
            metrics={"efficiency": 87.3},
        )
        result = simulate(obs)
        assert result.projectedEfficiency == pytest.approx(99.3)
        assert result.timeSavedLabel == "30 minutes"

    def test_simulate_without_baseline(self, make_observation) -> None:
        with pytest.raises(ValidationError):
            InsightEngine().simulate(make_observation(challenges=["API authentication"]))

    def test_classify(self) -> None:
        assert classify(FeatureVector(tenantCount=2, dreamStateEffectiveness=65)).id == (
            "multi-tenant-optimization"
        )

    def test_default_engine_is_shared(self) -> None:
        assert get_engine() is get_engine()

    def test_malformed_category_table_is_fatal(self) -> None:
        with pytest.raises(ConfigurationError):
            InsightEngine(categories=(PatternCategory("a", ("x",)), PatternCategory("a", ("y",))))

    def test_duplicate_templates_are_fatal(self) -> None:
        with pytest.raises(ConfigurationError):
            InsightEngine(templates=INSIGHT_TEMPLATES + INSIGHT_TEMPLATES[:1])
