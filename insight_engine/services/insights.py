"""
Insight Synthesizer.

Turns the run's Scenario, FeatureVector, meta analysis and simulations into
ranked Insight objects using a declarative catalog of templates.

Each template declares:
- key, category, source, analysisType and correlations (static)
- precondition(ctx) -> bool; a False result skips the template silently
- title, content, impact, confidence, recommendations and dataPoints, each
  either a constant or a function of the SynthesisContext
- optionally simulationNodes(ctx), for counterfactual templates

Rules:
1. A template whose precondition is False, or which raises
   TemplatePreconditionUnmet, is skipped at debug level.
2. Any other failure inside one template is logged and that template is
   skipped; the run continues.
3. Output is sorted by confidence descending, ties broken by catalog order.
4. The list is truncated to `max_insights` when set.

Catalog, in declaration order:
    scenario-strategy, recent-activity-pulse, dominant-thinking-pattern,
    friction-hotspots, efficiency-baseline, tenant-optimization,
    counterfactual-opportunity, strategic-evolution,
    philosophical-consistency
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from insight_engine.core.exceptions import ConfigurationError, TemplatePreconditionUnmet
from insight_engine.models import (
    ActivityLevel,
    FeatureVector,
    Impact,
    Insight,
    InsightCategory,
    InsightMetadata,
    InsightSource,
    MetaAnalysis,
    Observation,
    Scenario,
    SignalCount,
    SimulationResult,
)
from insight_engine.services.simulation import (
    CHALLENGE_HEURISTICS,
    categorize_intent,
    estimate_resolution_time,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_CONFIDENCE = 95

# Efficiency points gained above which a simulated session counts as high priority
HIGH_PRIORITY_GAIN = 5

# More high-priority sessions than this makes the counterfactual insight critical
CRITICAL_SESSION_COUNT = 2

CATEGORY_RECOMMENDATIONS: Dict[str, str] = {
    "strategic_thinking": "Turn recurring strategic themes into a written roadmap",
    "systems_thinking": "Map the system boundaries that keep coming up into explicit module contracts",
    "problem_solving": "Capture recurring fixes as reusable troubleshooting guides",
    "meta_cognitive": "Schedule regular reviews so reflection turns into decisions",
    "execution": "Protect execution momentum by batching planning into fixed checkpoints",
    "framework_creation": "Promote repeated patterns into shared templates",
    "architectural_thinking": "Record architecture decisions where the team can find them",
    "quality_control": "Automate the quality checks that are currently done by hand",
    "modularity": "Extract the most reused components into their own modules",
    "reusability": "Publish the strongest patterns as a shared library",
    "teachability": "Turn explanations into onboarding documentation",
    "progressive_enhancement": "Define an enhancement roadmap before the next iteration",
}


# =============================================================================
# Context and Template Types
# =============================================================================


@dataclass(frozen=True)
class SynthesisContext:
    """Everything a template may read. Built once per run, never mutated."""
    scenario: Scenario
    feature_vector: FeatureVector
    meta: MetaAnalysis
    observations: Tuple[Observation, ...]
    signals: Tuple[Tuple[SignalCount, ...], ...]
    simulations: Tuple[SimulationResult, ...]
    as_of: datetime
    recent_window_hours: int = 48


Resolvable = Union[Any, Callable[[SynthesisContext], Any]]


def _resolve(value: Resolvable, ctx: SynthesisContext) -> Any:
    return value(ctx) if callable(value) else value


@dataclass(frozen=True)
class InsightTemplate:
    """
    Declarative recipe for one Insight.

    Constant-or-callable fields are resolved against the SynthesisContext
    when the template is rendered.
    """
    key: str
    category: InsightCategory
    source: InsightSource
    analysis_type: str
    precondition: Callable[[SynthesisContext], bool]
    title: Resolvable
    content: Resolvable
    impact: Resolvable
    confidence: Resolvable
    recommendations: Resolvable
    data_points: Resolvable = 0
    correlations: Tuple[str, ...] = ()
    simulation_nodes: Optional[Callable[[SynthesisContext], List[str]]] = None

    def render(self, ctx: SynthesisContext) -> Insight:
        confidence = max(0, min(100, int(round(_resolve(self.confidence, ctx)))))
        return Insight(
            title=_resolve(self.title, ctx),
            category=self.category,
            source=self.source,
            confidence=confidence,
            impact=_resolve(self.impact, ctx),
            content=_resolve(self.content, ctx),
            metadata=InsightMetadata(
                analysisType=self.analysis_type,
                dataPoints=_resolve(self.data_points, ctx),
                correlations=list(self.correlations),
                recommendations=list(_resolve(self.recommendations, ctx)),
            ),
            simulationNodes=self.simulation_nodes(ctx) if self.simulation_nodes else None,
        )


# =============================================================================
# Helper Functions
# =============================================================================


def humanize(name: str) -> str:
    return name.replace("_", " ").replace("-", " ").title()


def _bounded(value: float) -> int:
    return int(min(MAX_CONFIDENCE, round(value)))


def _dominant_category(fv: FeatureVector) -> str:
    # max() keeps the first of equal counts, i.e. table order
    return max(fv.categoryCounts, key=lambda name: fv.categoryCounts[name])


def _category_examples(ctx: SynthesisContext, category: str, limit: int = 3) -> List[str]:
    examples: List[str] = []
    for observation_signals in ctx.signals:
        for signal in observation_signals:
            if signal.category == category:
                for example in signal.examples:
                    if example.lower() not in (e.lower() for e in examples):
                        examples.append(example)
                    if len(examples) >= limit:
                        return examples
    return examples


def _challenge_counts(ctx: SynthesisContext) -> Counter:
    counts: Counter = Counter()
    for observation in ctx.observations:
        for challenge in observation.challenges:
            counts[challenge.strip()] += 1
    return counts


def _efficiency_observations(ctx: SynthesisContext) -> List[Observation]:
    return [o for o in ctx.observations if "efficiency" in o.metrics]


def _has_challenges(ctx: SynthesisContext) -> bool:
    return any(o.challenges for o in ctx.observations)


def _improving_simulations(ctx: SynthesisContext) -> List[SimulationResult]:
    return [s for s in ctx.simulations if s.matchedHeuristics]


# =============================================================================
# Template: scenario-strategy
# =============================================================================


def _scenario_content(ctx: SynthesisContext) -> str:
    params = ctx.scenario.params
    focus = ", ".join(params.focusAreas) if params.focusAreas else "general optimization"
    return (
        f"{ctx.scenario.reasoning}. Recommended analysis depth {params.analysisDepth} "
        f"targeting {params.targetInsightCount} insight nodes, focused on {focus}."
    )


def _scenario_confidence(ctx: SynthesisContext) -> int:
    if ctx.scenario.isDefault:
        return 60
    return _bounded(80 + len(ctx.observations) / 5)


def _scenario_recommendations(ctx: SynthesisContext) -> List[str]:
    areas = ctx.scenario.params.focusAreas
    if not areas:
        return ["Run a general ecosystem optimization review"]
    return [f"Prioritize {humanize(area).lower()}" for area in areas]


# =============================================================================
# Template: recent-activity-pulse
# =============================================================================


def _pulse_content(ctx: SynthesisContext) -> str:
    fv = ctx.feature_vector
    cutoff_hours = ctx.recent_window_hours
    mix = ", ".join(
        f"{count} {humanize(source).lower()}"
        for source, count in sorted(fv.sourceCounts.items(), key=lambda kv: (-kv[1], kv[0]))
    )
    return (
        f"{fv.recentObservationCount} of {fv.totalObservations} observations arrived in the "
        f"last {cutoff_hours} hours ({fv.activityLevel.value} activity). Source mix: {mix}."
    )


def _pulse_impact(ctx: SynthesisContext) -> Impact:
    return {
        ActivityLevel.HIGH: Impact.HIGH,
        ActivityLevel.MEDIUM: Impact.MEDIUM,
    }.get(ctx.feature_vector.activityLevel, Impact.LOW)


# =============================================================================
# Template: dominant-thinking-pattern
# =============================================================================


def _pattern_title(ctx: SynthesisContext) -> str:
    return f"Dominant Pattern: {humanize(_dominant_category(ctx.feature_vector))}"


def _pattern_content(ctx: SynthesisContext) -> str:
    fv = ctx.feature_vector
    top = _dominant_category(fv)
    examples = _category_examples(ctx, top)
    text = (
        f"{humanize(top)} accounts for {fv.categoryFrequencies.get(top, 0)}% of "
        f"{fv.totalSignals} signals across {fv.totalObservations} observations."
    )
    if examples:
        text += " Examples: " + ", ".join(f"'{e}'" for e in examples) + "."
    return text


def _pattern_recommendations(ctx: SynthesisContext) -> List[str]:
    fv = ctx.feature_vector
    ranked = sorted(fv.categoryCounts, key=lambda name: -fv.categoryCounts[name])
    return [
        CATEGORY_RECOMMENDATIONS.get(name, f"Build on {humanize(name).lower()}")
        for name in ranked[:2] if fv.categoryCounts[name] > 0
    ]


# =============================================================================
# Template: friction-hotspots
# =============================================================================


def _friction_title(ctx: SynthesisContext) -> str:
    counts = _challenge_counts(ctx)
    repeated = sum(1 for c in counts.values() if c > 1)
    if repeated:
        return f"Friction Hotspots: {repeated} Recurring Challenges"
    return f"Friction Hotspots: {len(counts)} Challenges Recorded"


def _friction_content(ctx: SynthesisContext) -> str:
    parts = [
        f"{challenge} (seen {count}x, typical resolution {estimate_resolution_time(challenge)})"
        for challenge, count in _challenge_counts(ctx).most_common(3)
    ]
    return "Most frequent challenges: " + "; ".join(parts) + "."


def _friction_impact(ctx: SynthesisContext) -> Impact:
    counts = _challenge_counts(ctx)
    return Impact.HIGH if any(c > 1 for c in counts.values()) else Impact.MEDIUM


def _friction_recommendations(ctx: SynthesisContext) -> List[str]:
    recommendations: List[str] = []
    for challenge, _ in _challenge_counts(ctx).most_common(3):
        heuristic = next((h for h in CHALLENGE_HEURISTICS if h.matches([challenge])), None)
        recommendation = (
            heuristic.action if heuristic
            else f"Capture the resolution of '{challenge}' as a reusable pattern"
        )
        if recommendation not in recommendations:
            recommendations.append(recommendation)
    return recommendations


# =============================================================================
# Template: efficiency-baseline
# =============================================================================


def _efficiency_values(ctx: SynthesisContext) -> List[float]:
    observations = _efficiency_observations(ctx)
    if not observations:
        raise TemplatePreconditionUnmet("efficiency-baseline", "no efficiency metrics recorded")
    return [o.metrics["efficiency"] for o in observations]


def _efficiency_by_intent(ctx: SynthesisContext) -> Dict[str, float]:
    groups: Dict[str, List[float]] = defaultdict(list)
    for observation in _efficiency_observations(ctx):
        groups[categorize_intent(observation.text)].append(observation.metrics["efficiency"])
    return {intent: float(np.mean(values)) for intent, values in groups.items()}


def _efficiency_title(ctx: SynthesisContext) -> str:
    values = _efficiency_values(ctx)
    return f"Efficiency Baseline: {np.mean(values):.1f}% Across {len(values)} Sessions"


def _efficiency_content(ctx: SynthesisContext) -> str:
    values = _efficiency_values(ctx)
    by_intent = _efficiency_by_intent(ctx)
    best = max(sorted(by_intent), key=lambda intent: by_intent[intent])
    return (
        f"Efficiency ranges from {min(values):.1f}% to {max(values):.1f}% "
        f"(mean {np.mean(values):.1f}%). {humanize(best)} work performs best at "
        f"{by_intent[best]:.1f}%."
    )


def _efficiency_recommendations(ctx: SynthesisContext) -> List[str]:
    by_intent = _efficiency_by_intent(ctx)
    best = max(sorted(by_intent), key=lambda intent: by_intent[intent])
    return [
        f"Replicate the practices of {humanize(best).lower()} work in other areas",
        "Track efficiency per session to confirm improvements",
    ]


# =============================================================================
# Template: tenant-optimization
# =============================================================================


def _tenant_impact(ctx: SynthesisContext) -> Impact:
    return Impact.HIGH if ctx.feature_vector.dreamStateEffectiveness < 70 else Impact.MEDIUM


# =============================================================================
# Template: counterfactual-opportunity
# =============================================================================


def _counterfactual_title(ctx: SynthesisContext) -> str:
    count = len(_improving_simulations(ctx))
    noun = "Session" if count == 1 else "Sessions"
    return f"Counterfactual Opportunity: {count} {noun} Could Run Faster"


def _counterfactual_content(ctx: SynthesisContext) -> str:
    results = _improving_simulations(ctx)
    minutes = sum(r.timeSavedMinutes for r in results)
    gain = float(np.mean([r.projectedEfficiency - r.baselineEfficiency for r in results]))
    return (
        f"Applying known approaches up front would have saved {minutes} minutes across "
        f"{len(results)} sessions, raising efficiency by {gain:.1f} points on average."
    )


def _counterfactual_impact(ctx: SynthesisContext) -> Impact:
    high_priority = [
        r for r in _improving_simulations(ctx)
        if r.projectedEfficiency - r.baselineEfficiency >= HIGH_PRIORITY_GAIN
    ]
    return Impact.CRITICAL if len(high_priority) > CRITICAL_SESSION_COUNT else Impact.HIGH


def _counterfactual_confidence(ctx: SynthesisContext) -> int:
    return _bounded(float(np.mean([r.confidenceLevel for r in _improving_simulations(ctx)])) * 100)


def _counterfactual_recommendations(ctx: SynthesisContext) -> List[str]:
    recommendations: List[str] = []
    for result in _improving_simulations(ctx):
        for improvement in result.improvements:
            if improvement not in recommendations:
                recommendations.append(improvement)
    return recommendations


def _counterfactual_nodes(ctx: SynthesisContext) -> List[str]:
    depth = ctx.scenario.params.analysisDepth
    return [
        f"{r.observationId}: {r.baselineEfficiency:g}% -> {r.projectedEfficiency:g}% "
        f"({r.timeSavedLabel} saved)"
        for r in _improving_simulations(ctx)[:depth]
    ]


# =============================================================================
# Template: strategic-evolution
# =============================================================================


def _evolution_content(ctx: SynthesisContext) -> str:
    phases = ctx.meta.phases
    lines = [
        f"{p.label}: growth {p.growthScore} over {p.observationCount} observations"
        for p in phases
    ]
    direction = "rising" if phases[-1].growthScore >= phases[0].growthScore else "falling"
    return "; ".join(lines) + f". Growth is {direction} across the history."


def _evolution_recommendations(ctx: SynthesisContext) -> List[str]:
    phases = ctx.meta.phases
    best = max(phases, key=lambda p: p.growthScore)
    if phases[-1].growthScore >= phases[0].growthScore:
        return [f"Carry the practices of the {phases[-1].label} phase forward"]
    return [f"Revisit what drove growth during the {best.label} phase"]


# =============================================================================
# Template: philosophical-consistency
# =============================================================================


def _alignment_extremes(ctx: SynthesisContext) -> Tuple[str, str]:
    alignment = ctx.meta.alignment
    ordered = sorted(alignment, key=lambda name: (-alignment[name], name))
    return ordered[0], ordered[-1]


def _consistency_content(ctx: SynthesisContext) -> str:
    strongest, weakest = _alignment_extremes(ctx)
    alignment = ctx.meta.alignment
    return (
        f"Consistency score {ctx.meta.consistencyScore} "
        f"({ctx.meta.growthTrajectory.value} trajectory). Strongest principle: "
        f"{humanize(strongest)} ({alignment[strongest]}); weakest: "
        f"{humanize(weakest)} ({alignment[weakest]})."
    )


def _consistency_impact(ctx: SynthesisContext) -> Impact:
    score = ctx.meta.consistencyScore
    if score >= 80:
        return Impact.LOW
    if score >= 60:
        return Impact.MEDIUM
    return Impact.HIGH


def _consistency_recommendations(ctx: SynthesisContext) -> List[str]:
    _, weakest = _alignment_extremes(ctx)
    return [
        f"Strengthen {humanize(weakest).lower()} in upcoming work",
        CATEGORY_RECOMMENDATIONS.get(weakest, "Review alignment with core principles"),
    ]


# =============================================================================
# Catalog
# =============================================================================

INSIGHT_TEMPLATES: Tuple[InsightTemplate, ...] = (
    InsightTemplate(
        key="scenario-strategy",
        category=InsightCategory.DECISION_MAKING,
        source=InsightSource.SYSTEM_REFLECTION,
        analysis_type="situation_classification",
        precondition=lambda ctx: True,
        title=lambda ctx: f"Strategy Focus: {humanize(ctx.scenario.id)}",
        content=_scenario_content,
        impact=Impact.HIGH,
        confidence=_scenario_confidence,
        recommendations=_scenario_recommendations,
        data_points=lambda ctx: ctx.feature_vector.totalObservations,
        correlations=("scenario_rules", "feature_vector"),
    ),
    InsightTemplate(
        key="recent-activity-pulse",
        category=InsightCategory.SYSTEM_EVOLUTION,
        source=InsightSource.DEVELOPER_ACTIVITY,
        analysis_type="activity_pulse",
        precondition=lambda ctx: ctx.feature_vector.recentObservationCount > 0,
        title=lambda ctx: (
            f"Ecosystem Pulse: {ctx.feature_vector.recentObservationCount} Updates in the "
            f"Last {ctx.recent_window_hours} Hours"
        ),
        content=_pulse_content,
        impact=_pulse_impact,
        confidence=lambda ctx: _bounded(60 + 5 * ctx.feature_vector.recentObservationCount),
        recommendations=(
            "Review the newest changes for integration opportunities",
            "Keep documentation in step with recent activity",
        ),
        data_points=lambda ctx: ctx.feature_vector.recentObservationCount,
        correlations=("activity_level", "source_mix"),
    ),
    InsightTemplate(
        key="dominant-thinking-pattern",
        category=InsightCategory.DEVELOPER_INSIGHTS,
        source=InsightSource.CADIS_MEMORY,
        analysis_type="pattern_analysis",
        precondition=lambda ctx: ctx.feature_vector.totalSignals > 0,
        title=_pattern_title,
        content=_pattern_content,
        impact=Impact.MEDIUM,
        confidence=lambda ctx: _bounded(50 + ctx.feature_vector.totalSignals),
        recommendations=_pattern_recommendations,
        data_points=lambda ctx: ctx.feature_vector.totalSignals,
        correlations=("category_frequency", "signal_volume"),
    ),
    InsightTemplate(
        key="friction-hotspots",
        category=InsightCategory.DEVELOPER_INSIGHTS,
        source=InsightSource.DEVELOPER_ACTIVITY,
        analysis_type="challenge_analysis",
        precondition=_has_challenges,
        title=_friction_title,
        content=_friction_content,
        impact=_friction_impact,
        confidence=lambda ctx: _bounded(55 + 5 * sum(_challenge_counts(ctx).values())),
        recommendations=_friction_recommendations,
        data_points=lambda ctx: sum(_challenge_counts(ctx).values()),
        correlations=("challenge_frequency", "resolution_time"),
    ),
    InsightTemplate(
        key="efficiency-baseline",
        category=InsightCategory.SYSTEM_EVOLUTION,
        source=InsightSource.DEVELOPER_ACTIVITY,
        analysis_type="efficiency_analysis",
        precondition=lambda ctx: True,
        title=_efficiency_title,
        content=_efficiency_content,
        impact=lambda ctx: Impact.MEDIUM if np.mean(_efficiency_values(ctx)) >= 85 else Impact.HIGH,
        confidence=lambda ctx: _bounded(60 + 5 * len(_efficiency_values(ctx))),
        recommendations=_efficiency_recommendations,
        data_points=lambda ctx: len(_efficiency_values(ctx)),
        correlations=("efficiency", "project_intent"),
    ),
    InsightTemplate(
        key="tenant-optimization",
        category=InsightCategory.ECOSYSTEM_HEALTH,
        source=InsightSource.DREAMSTATE,
        analysis_type="tenant_analysis",
        precondition=lambda ctx: ctx.feature_vector.tenantCount > 1,
        title=lambda ctx: (
            f"Multi-Tenant Optimization: {ctx.feature_vector.tenantCount} Tenants at "
            f"{ctx.feature_vector.dreamStateEffectiveness}% Effectiveness"
        ),
        content=lambda ctx: (
            f"{ctx.feature_vector.tenantCount} tenants share the platform while DreamState "
            f"sessions reach {ctx.feature_vector.dreamStateEffectiveness}% effectiveness over "
            f"{ctx.feature_vector.recentSessionCount} recent sessions."
        ),
        impact=_tenant_impact,
        confidence=80,
        recommendations=(
            "Identify cross-tenant patterns worth standardizing",
            "Schedule DreamState sessions for the lowest-scoring tenants",
        ),
        data_points=lambda ctx: ctx.feature_vector.tenantCount,
        correlations=("tenant_count", "dreamstate_effectiveness"),
    ),
    InsightTemplate(
        key="counterfactual-opportunity",
        category=InsightCategory.DREAMSTATE_PREDICTION,
        source=InsightSource.DREAMSTATE,
        analysis_type="counterfactual_simulation",
        precondition=lambda ctx: bool(_improving_simulations(ctx)),
        title=_counterfactual_title,
        content=_counterfactual_content,
        impact=_counterfactual_impact,
        confidence=_counterfactual_confidence,
        recommendations=_counterfactual_recommendations,
        data_points=lambda ctx: len(_improving_simulations(ctx)),
        correlations=("challenge_frequency", "time_saved"),
        simulation_nodes=_counterfactual_nodes,
    ),
    InsightTemplate(
        key="strategic-evolution",
        category=InsightCategory.SYSTEM_EVOLUTION,
        source=InsightSource.SYSTEM_REFLECTION,
        analysis_type="phase_analysis",
        precondition=lambda ctx: len(ctx.meta.phases) >= 2,
        title=lambda ctx: (
            f"Strategic Evolution: {ctx.meta.phases[0].label} to {ctx.meta.phases[-1].label}"
        ),
        content=_evolution_content,
        impact=Impact.MEDIUM,
        confidence=lambda ctx: min(90, 50 + 10 * len(ctx.meta.phases)),
        recommendations=_evolution_recommendations,
        data_points=lambda ctx: sum(p.observationCount for p in ctx.meta.phases),
        correlations=("phase_growth", "signal_volume"),
    ),
    InsightTemplate(
        key="philosophical-consistency",
        category=InsightCategory.DECISION_MAKING,
        source=InsightSource.CADIS_MEMORY,
        analysis_type="philosophical_alignment",
        precondition=lambda ctx: ctx.meta.consistencyScore > 0,
        title=lambda ctx: (
            f"Philosophical Alignment: {ctx.meta.consistencyScore}% Consistency "
            f"({ctx.meta.growthTrajectory.value})"
        ),
        content=_consistency_content,
        impact=_consistency_impact,
        confidence=75,
        recommendations=_consistency_recommendations,
        data_points=lambda ctx: len(ctx.meta.alignment),
        correlations=("principle_alignment", "consistency_score"),
    ),
)


def validate_templates(templates: Sequence[InsightTemplate]) -> None:
    """
    Check a template catalog before it is shared across runs.

    Raises:
        ConfigurationError: On duplicate keys or empty constant recommendations
    """
    problems: List[str] = []
    seen = set()
    for template in templates:
        if template.key in seen:
            problems.append(f"duplicate insight template '{template.key}'")
        seen.add(template.key)
        if not callable(template.recommendations) and not template.recommendations:
            problems.append(f"insight template '{template.key}' has no recommendations")
    if problems:
        raise ConfigurationError(problems)


# =============================================================================
# Synthesis
# =============================================================================


def synthesize_insights(
    ctx: SynthesisContext,
    templates: Sequence[InsightTemplate] = INSIGHT_TEMPLATES,
    max_insights: Optional[int] = None,
) -> List[Insight]:
    """
    Render every applicable template and rank the results.

    Args:
        ctx: Synthesis context of the run
        templates: Template catalog, in declaration order
        max_insights: Optional cap on the number of returned insights

    Returns:
        Insights ordered by confidence descending, then declaration order
    """
    ranked: List[Tuple[int, int, Insight]] = []

    for index, template in enumerate(templates):
        try:
            if not template.precondition(ctx):
                logger.debug(f"Skipping template '{template.key}': precondition false")
                continue
            insight = template.render(ctx)
        except TemplatePreconditionUnmet as e:
            logger.debug(f"Skipping template: {e}")
            continue
        except Exception:
            logger.exception(f"Template '{template.key}' failed; skipping")
            continue

        ranked.append((-insight.confidence, index, insight))

    ranked.sort(key=lambda item: (item[0], item[1]))
    insights = [insight for _, _, insight in ranked]

    if max_insights is not None:
        insights = insights[:max_insights]

    logger.info(f"Synthesized {len(insights)} insights from {len(templates)} templates")
    return insights


__all__ = [
    "SynthesisContext",
    "InsightTemplate",
    "INSIGHT_TEMPLATES",
    "CATEGORY_RECOMMENDATIONS",
    "humanize",
    "validate_templates",
    "synthesize_insights",
]
