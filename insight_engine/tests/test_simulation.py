"""
Counterfactual Simulator Test Module

Covers heuristic matching, the efficiency cap, time-saved formatting,
monotonicity and the baseline checks.
"""

import pytest

from insight_engine.core.exceptions import ValidationError
from insight_engine.models import SimulationResult
from insight_engine.services.simulation import (
    Heuristic,
    categorize_intent,
    estimate_resolution_time,
    format_time_saved,
    simulate,
    simulate_batch,
)


@pytest.fixture
def session(make_observation):
    return make_observation(
        obs_id="conv-001",
        challenges=["TypeScript compilation errors", "API authentication issues"],
        metrics={"efficiency": 87.3},
    )


class TestSimulate:
    """Tests for simulate."""

    def test_two_matching_challenges(self, session) -> None:
        result = simulate(session)

        assert result.observationId == "conv-001"
        assert result.baselineEfficiency == pytest.approx(87.3)
        assert result.projectedEfficiency == pytest.approx(99.3)
        assert result.matchedHeuristics == ["typescript compilation", "api authentication"]
        assert result.timeSavedMinutes == 30
        assert result.timeSavedLabel == "30 minutes"
        assert result.improvements == [
            "Pre-validate TypeScript types before implementation",
            "Implement authentication testing framework first",
        ]
        assert result.confidenceLevel == pytest.approx(0.97)

    def test_projection_is_capped_at_100(self, make_observation) -> None:
        obs = make_observation(
            challenges=["TypeScript compilation", "API authentication"],
            successFactors=["Progressive enhancement"],
            metrics={"efficiency": 95},
        )
        assert simulate(obs).projectedEfficiency == 100.0

    def test_no_match_keeps_baseline(self, make_observation) -> None:
        obs = make_observation(challenges=["Unclear requirements"], metrics={"efficiency": 70})

        result = simulate(obs)

        assert result.projectedEfficiency == result.baselineEfficiency == 70.0
        assert result.matchedHeuristics == []
        assert result.timeSavedLabel == "0 minutes"
        assert result.confidenceLevel == pytest.approx(0.85)

    def test_heuristic_counts_once(self, make_observation) -> None:
        obs = make_observation(
            challenges=["TypeScript compilation errors", "More typescript compilation trouble"],
            metrics={"efficiency": 50},
        )
        result = simulate(obs)
        assert result.matchedHeuristics == ["typescript compilation"]
        assert result.projectedEfficiency == 55.0

    def test_proactive_heuristics_match_success_factors(self, make_observation) -> None:
        obs = make_observation(
            challenges=["Nothing notable"],
            successFactors=["Modular architecture from day one"],
            metrics={"efficiency": 80},
        )
        result = simulate(obs)
        assert result.matchedHeuristics == ["modular architecture"]
        assert result.projectedEfficiency == 82.0

    def test_adding_a_trigger_never_decreases_projection(self, make_observation) -> None:
        base = make_observation(challenges=["API authentication issues"], metrics={"efficiency": 60})
        more = make_observation(
            challenges=["API authentication issues", "Component import conflicts"],
            metrics={"efficiency": 60},
        )
        assert simulate(more).projectedEfficiency >= simulate(base).projectedEfficiency

    def test_deterministic(self, session) -> None:
        assert simulate(session) == simulate(session)

    def test_custom_minutes(self, make_observation) -> None:
        heuristics = (
            Heuristic("slow build", "Cache the build", efficiency_delta=4, time_saved_minutes=45),
            Heuristic("flaky test", "Quarantine flaky tests", efficiency_delta=2, time_saved_minutes=30),
        )
        obs = make_observation(challenges=["Slow build", "Flaky test suite"], metrics={"efficiency": 50})

        result = simulate(obs, challenge_heuristics=heuristics, proactive_heuristics=())

        assert result.timeSavedMinutes == 75
        assert result.timeSavedLabel == "1h 15m"

    def test_missing_baseline_is_rejected(self, make_observation) -> None:
        with pytest.raises(ValidationError):
            simulate(make_observation(challenges=["TypeScript compilation"]))

    def test_out_of_range_baseline_is_rejected(self, make_observation) -> None:
        obs = make_observation(challenges=["TypeScript compilation"], metrics={"efficiency": 120})
        with pytest.raises(ValidationError):
            simulate(obs)


class TestSimulateBatch:
    """Tests for simulate_batch."""

    def test_skips_sessions_without_challenges_or_baseline(self, session, make_observation) -> None:
        observations = [
            session,
            make_observation(obs_id="no-challenges", metrics={"efficiency": 90}),
            make_observation(obs_id="no-baseline", challenges=["API authentication"]),
        ]

        results = simulate_batch(observations)

        assert [r.observationId for r in results] == ["conv-001"]


class TestHelpers:
    """Tests for formatting and classification helpers."""

    @pytest.mark.parametrize("minutes,expected", [
        (0, "0 minutes"),
        (45, "45 minutes"),
        (60, "1h 0m"),
        (75, "1h 15m"),
        (135, "2h 15m"),
    ])
    def test_format_time_saved(self, minutes, expected) -> None:
        assert format_time_saved(minutes) == expected

    @pytest.mark.parametrize("intent,expected", [
        ("Design the system architecture", "system_design"),
        ("Train an AI agent", "ai_development"),
        ("Maintain a fountain", "general_development"),
        ("Build a reusable component", "module_creation"),
        ("Go offline first", "advanced_features"),
    ])
    def test_categorize_intent(self, intent, expected) -> None:
        assert categorize_intent(intent) == expected

    def test_resolution_estimates(self) -> None:
        assert estimate_resolution_time("TypeScript compilation errors") == "15-30 minutes"
        assert estimate_resolution_time("Database schema drift") == "45-90 minutes"
        assert estimate_resolution_time("Unclear requirements") == "30-60 minutes"

    def test_result_rejects_projection_below_baseline(self) -> None:
        with pytest.raises(ValueError):
            SimulationResult(observationId="x", baselineEfficiency=80, projectedEfficiency=70)
