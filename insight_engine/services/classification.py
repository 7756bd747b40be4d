"""
Situation Classifier.

Maps a FeatureVector onto the Scenario that parameterizes insight synthesis.
The decision is data: an ordered table of ScenarioRules, each a conjunction
of `feature <operator> value` conditions, evaluated by one generic evaluator.
Rules are tried in ascending priority and the first full match wins; when
nothing matches, the table's designated default Scenario applies.

Because the table is plain data it can be listed over the API, loaded from
JSON, and unit-tested rule by rule. `load_rule_table` validates it once at
engine construction:
- rule ids and priorities are unique
- every condition names a known feature (dotted paths address dict features)
- every operator is known, and strings are only compared with == / !=
- reasoning placeholders name known features
- the default scenario id exists in the table

Built-in rules:
1. tenantCount > 1 and dreamStateEffectiveness < 70
   -> multi-tenant-optimization
2. moduleActivity == "high" and journalInsightCount > 10
   -> rapid-development-optimization
3. recentSessionCount < 2 and totalSignals > 0
   -> comprehensive-ecosystem-analysis
4. default -> strategic-philosophical-optimization

Rule 3 also requires at least one signal. Without that condition every
batch with fewer than two recent sessions would qualify, including a single
record with empty text; such signal-free batches fall through to the
default scenario instead.
"""

import logging
import operator
import string
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from insight_engine.core.exceptions import ConfigurationError
from insight_engine.models import (
    FeatureVector,
    RuleCondition,
    Scenario,
    ScenarioParams,
    ScenarioRule,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}

EQUALITY_OPERATORS = ("==", "!=")

FEATURE_NAMES: Tuple[str, ...] = tuple(FeatureVector.model_fields)

# Features holding a mapping; conditions address their entries with a dotted path
MAPPING_FEATURES: Tuple[str, ...] = tuple(
    name for name, info in FeatureVector.model_fields.items()
    if getattr(info.annotation, "__origin__", None) is dict
)

DEFAULT_SCENARIO_ID = "strategic-philosophical-optimization"


# =============================================================================
# Built-in Rule Table
# =============================================================================

DEFAULT_SCENARIO_RULES: Tuple[ScenarioRule, ...] = (
    ScenarioRule(
        id="multi-tenant-optimization",
        priority=1,
        conditions=[
            RuleCondition(feature="tenantCount", operator=">", value=1),
            RuleCondition(feature="dreamStateEffectiveness", operator="<", value=70),
        ],
        params=ScenarioParams(
            analysisDepth=5,
            targetInsightCount=35,
            focusAreas=[
                "tenant-satisfaction",
                "cross-tenant-patterns",
                "revenue-optimization",
                "scaling-efficiency",
            ],
        ),
        reasoning=(
            "{tenantCount} tenants detected with {dreamStateEffectiveness}% DreamState "
            "effectiveness - focus on tenant optimization"
        ),
    ),
    ScenarioRule(
        id="rapid-development-optimization",
        priority=2,
        conditions=[
            RuleCondition(feature="moduleActivity", operator="==", value="high"),
            RuleCondition(feature="journalInsightCount", operator=">", value=10),
        ],
        params=ScenarioParams(
            analysisDepth=4,
            targetInsightCount=30,
            focusAreas=[
                "development-velocity",
                "module-optimization",
                "team-productivity",
                "quality-maintenance",
            ],
        ),
        reasoning=(
            "High module activity ({moduleActivity}) with {journalInsightCount} journal "
            "insights - optimize development velocity"
        ),
    ),
    ScenarioRule(
        id="comprehensive-ecosystem-analysis",
        priority=3,
        conditions=[
            RuleCondition(feature="recentSessionCount", operator="<", value=2),
            RuleCondition(feature="totalSignals", operator=">", value=0),
        ],
        params=ScenarioParams(
            analysisDepth=6,
            targetInsightCount=40,
            focusAreas=[
                "ecosystem-health",
                "strategic-planning",
                "philosophical-alignment",
                "growth-opportunities",
            ],
        ),
        reasoning=(
            "Only {recentSessionCount} recent DreamState sessions - comprehensive "
            "ecosystem review needed"
        ),
    ),
    ScenarioRule(
        id=DEFAULT_SCENARIO_ID,
        priority=100,
        conditions=[],
        params=ScenarioParams(
            analysisDepth=4,
            targetInsightCount=25,
            focusAreas=[
                "philosophical-alignment",
                "efficiency-optimization",
                "sustainable-growth",
                "foundation-strengthening",
            ],
        ),
        reasoning="Standard ecosystem optimization with philosophical alignment focus",
    ),
)


# =============================================================================
# Rule Table
# =============================================================================


@dataclass(frozen=True)
class RuleTable:
    """
    Validated, priority-ordered rule table.

    Instances are immutable and safe to share between concurrent runs.
    """
    rules: Tuple[ScenarioRule, ...]
    default_id: str

    @property
    def default_rule(self) -> ScenarioRule:
        return next(rule for rule in self.rules if rule.id == self.default_id)

    @property
    def candidate_rules(self) -> Tuple[ScenarioRule, ...]:
        """Rules tried before falling back to the default, in priority order."""
        return tuple(rule for rule in self.rules if rule.id != self.default_id)


def _placeholders(template: str) -> List[str]:
    return [
        field_name for _, field_name, _, _ in string.Formatter().parse(template)
        if field_name
    ]


def _validate_condition(rule_id: str, condition: RuleCondition) -> List[str]:
    problems: List[str] = []
    root, _, rest = condition.feature.partition(".")

    if root not in FEATURE_NAMES:
        problems.append(f"rule '{rule_id}': unknown feature '{condition.feature}'")
    elif rest and root not in MAPPING_FEATURES:
        problems.append(
            f"rule '{rule_id}': feature '{root}' is not a mapping and cannot take a dotted path"
        )

    if condition.operator not in OPERATORS:
        problems.append(f"rule '{rule_id}': unknown operator '{condition.operator}'")
    elif isinstance(condition.value, str) and condition.operator not in EQUALITY_OPERATORS:
        problems.append(
            f"rule '{rule_id}': string value {condition.value!r} used with ordering "
            f"operator '{condition.operator}'"
        )
    return problems


def load_rule_table(
    rules: Sequence[Union[ScenarioRule, Mapping[str, Any]]],
    default_id: str = DEFAULT_SCENARIO_ID,
) -> RuleTable:
    """
    Validate and freeze a rule table.

    Args:
        rules: ScenarioRule objects or their dict form (e.g. parsed JSON)
        default_id: Id of the rule used when no other rule matches

    Returns:
        The validated RuleTable, ordered by ascending priority

    Raises:
        ConfigurationError: Listing every problem found in the table
    """
    problems: List[str] = []
    parsed: List[ScenarioRule] = []

    for index, raw in enumerate(rules):
        if isinstance(raw, ScenarioRule):
            parsed.append(raw)
            continue
        try:
            parsed.append(ScenarioRule.model_validate(raw))
        except PydanticValidationError as e:
            problems.append(f"rule #{index} is malformed: {e.error_count()} field error(s)")

    seen_ids = set()
    seen_priorities = set()
    for rule in parsed:
        if rule.id in seen_ids:
            problems.append(f"duplicate rule id '{rule.id}'")
        seen_ids.add(rule.id)

        if rule.priority in seen_priorities:
            problems.append(f"rule '{rule.id}': duplicate priority {rule.priority}")
        seen_priorities.add(rule.priority)

        for condition in rule.conditions:
            problems.extend(_validate_condition(rule.id, condition))

        for name in _placeholders(rule.reasoning):
            if name not in FEATURE_NAMES:
                problems.append(f"rule '{rule.id}': reasoning references unknown feature '{name}'")

    if default_id not in seen_ids:
        problems.append(f"default scenario '{default_id}' is not defined in the rule table")

    if problems:
        raise ConfigurationError(problems)

    ordered = tuple(sorted(parsed, key=lambda r: r.priority))
    logger.info(f"Loaded rule table with {len(ordered)} rules (default '{default_id}')")
    return RuleTable(rules=ordered, default_id=default_id)


@lru_cache()
def get_default_rule_table() -> RuleTable:
    """Return the validated built-in rule table, built once per process."""
    return load_rule_table(DEFAULT_SCENARIO_RULES, DEFAULT_SCENARIO_ID)


# =============================================================================
# Evaluation
# =============================================================================


def resolve_feature(feature_vector: FeatureVector, path: str) -> Any:
    """
    Look up a feature by name or dotted path.

    Missing mapping entries resolve to 0 and enum values to their string form.
    """
    root, _, key = path.partition(".")
    value = getattr(feature_vector, root)
    if key:
        value = value.get(key, 0)
    if isinstance(value, Enum):
        value = value.value
    return value


def evaluate_condition(feature_vector: FeatureVector, condition: RuleCondition) -> bool:
    """Evaluate one condition; values of incomparable types never match."""
    actual = resolve_feature(feature_vector, condition.feature)
    try:
        return bool(OPERATORS[condition.operator](actual, condition.value))
    except TypeError:
        return False


def render_reasoning(template: str, feature_vector: FeatureVector) -> str:
    values = {name: resolve_feature(feature_vector, name) for name in FEATURE_NAMES}
    try:
        return template.format_map(values)
    except (KeyError, ValueError, IndexError):
        logger.warning(f"Could not render reasoning template: {template!r}")
        return template


def _to_scenario(rule: ScenarioRule, feature_vector: FeatureVector, is_default: bool) -> Scenario:
    return Scenario(
        id=rule.id,
        priority=rule.priority,
        params=rule.params,
        reasoning=render_reasoning(rule.reasoning, feature_vector),
        matchedConditions=[c.describe() for c in rule.conditions],
        isDefault=is_default,
    )


def classify(
    feature_vector: FeatureVector,
    table: Optional[RuleTable] = None,
) -> Scenario:
    """
    Select the Scenario for a FeatureVector.

    Args:
        feature_vector: Aggregated features of the batch
        table: Rule table to evaluate (defaults to the built-in table)

    Returns:
        The Scenario of the first matching rule, or the default Scenario
    """
    table = table or get_default_rule_table()

    for rule in table.candidate_rules:
        if all(evaluate_condition(feature_vector, c) for c in rule.conditions):
            logger.info(f"Classified as '{rule.id}' (priority {rule.priority})")
            return _to_scenario(rule, feature_vector, is_default=False)

    default_rule = table.default_rule
    logger.info(f"No rule matched; using default scenario '{default_rule.id}'")
    return _to_scenario(default_rule, feature_vector, is_default=True)


__all__ = [
    "OPERATORS",
    "FEATURE_NAMES",
    "DEFAULT_SCENARIO_ID",
    "DEFAULT_SCENARIO_RULES",
    "RuleTable",
    "load_rule_table",
    "get_default_rule_table",
    "resolve_feature",
    "evaluate_condition",
    "render_reasoning",
    "classify",
]
