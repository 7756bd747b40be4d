"""
Pattern Signal Extractor.

Counts lexical signals of thinking and working patterns in Observation text
using a static, declarative category table. Matching is case-insensitive,
word-bounded, and non-overlapping; up to `example_cap` matched substrings are
kept per category for explainability.

Extraction of a single Observation is pure and deterministic. Batch
extraction fans the per-Observation work out to worker threads, bounded by
the run's concurrency limit, and returns results in input order.

Each category also carries an alignment weight used by the Meta-Aggregator
to compute the consistency score.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from insight_engine.core.exceptions import ConfigurationError
from insight_engine.models import Observation, SignalCount


logger = logging.getLogger(__name__)


# =============================================================================
# Category Table
# =============================================================================


@dataclass(frozen=True)
class PatternCategory:
    """
    One signal category.

    Attributes:
        name: Category identifier used as the key in every downstream mapping
        terms: Words or phrases that count as one signal each
        weight: Alignment weight applied by the Meta-Aggregator
    """
    name: str
    terms: Tuple[str, ...]
    weight: int = 10
    pattern: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        # Longest alternatives first so multi-word terms win over their prefixes
        ordered = sorted(self.terms, key=len, reverse=True)
        alternation = "|".join(re.escape(term) for term in ordered)
        object.__setattr__(
            self, "pattern", re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE)
        )


SIGNAL_CATEGORIES: Tuple[PatternCategory, ...] = (
    PatternCategory(
        "strategic_thinking",
        ("strategy", "strategic", "direction", "vision", "plan", "approach", "goal", "objective"),
    ),
    PatternCategory(
        "systems_thinking",
        ("system", "architecture", "framework", "structure", "design", "modular", "component", "service"),
    ),
    PatternCategory(
        "problem_solving",
        ("problem", "issue", "solution", "fix", "resolve", "debug", "troubleshoot", "challenge"),
    ),
    PatternCategory(
        "meta_cognitive",
        ("analyze", "understand", "learn", "reflect", "think", "consider", "evaluate", "review"),
    ),
    PatternCategory(
        "execution",
        ("implement", "build", "create", "execute", "proceed", "ensure", "make sure",
         "action", "do", "solve"),
        weight=10,
    ),
    PatternCategory(
        "framework_creation",
        ("framework", "pattern", "template", "methodology", "process", "systematic", "standard"),
    ),
    PatternCategory(
        "architectural_thinking",
        ("architecture", "architectural", "design", "structure", "organization", "hierarchy"),
    ),
    PatternCategory(
        "quality_control",
        ("quality", "proper", "right", "correct", "should", "standard", "best practice", "optimize"),
    ),
    PatternCategory(
        "modularity",
        ("modular", "component", "service", "singleton", "separate", "architecture",
         "system", "structure", "organize"),
        weight=12,
    ),
    PatternCategory(
        "reusability",
        ("reusable", "framework", "pattern", "template", "systematic", "scale",
         "standard", "consistent", "library"),
        weight=12,
    ),
    PatternCategory(
        "teachability",
        ("document", "explain", "understand", "teach", "learn", "analyze", "framework",
         "define", "clarify"),
        weight=8,
    ),
    PatternCategory(
        "progressive_enhancement",
        ("enhance", "improve", "upgrade", "optimize", "refine", "evolve", "progressive",
         "better", "advance"),
    ),
)


def category_names(categories: Sequence[PatternCategory] = SIGNAL_CATEGORIES) -> List[str]:
    return [c.name for c in categories]


def category_weights(categories: Sequence[PatternCategory] = SIGNAL_CATEGORIES) -> Dict[str, int]:
    return {c.name: c.weight for c in categories}


def validate_categories(categories: Sequence[PatternCategory]) -> None:
    """
    Check a category table before it is shared across runs.

    Raises:
        ConfigurationError: On duplicate names, empty term lists, or
            non-positive weights
    """
    problems: List[str] = []
    seen = set()
    for category in categories:
        if category.name in seen:
            problems.append(f"duplicate signal category '{category.name}'")
        seen.add(category.name)
        if not category.terms:
            problems.append(f"signal category '{category.name}' has no terms")
        if category.weight <= 0:
            problems.append(f"signal category '{category.name}' has non-positive weight")
    if problems:
        raise ConfigurationError(problems)


# =============================================================================
# Extraction
# =============================================================================


def extract_signals(
    observation: Observation,
    example_cap: int = 3,
    categories: Sequence[PatternCategory] = SIGNAL_CATEGORIES,
) -> List[SignalCount]:
    """
    Count every category's matches in one Observation's text.

    Args:
        observation: The Observation to scan
        example_cap: Maximum matched substrings kept per category
        categories: Category table, in output order

    Returns:
        One SignalCount per category, in table order. Empty text yields
        all-zero counts.
    """
    text = observation.text or ""
    signals: List[SignalCount] = []

    for category in categories:
        if not text:
            signals.append(SignalCount(category=category.name, count=0, examples=[]))
            continue

        count = 0
        examples: List[str] = []
        for match in category.pattern.finditer(text):
            count += 1
            if len(examples) < example_cap:
                examples.append(match.group(0))

        signals.append(SignalCount(category=category.name, count=count, examples=examples))

    return signals


async def extract_signals_batch(
    observations: Sequence[Observation],
    example_cap: int = 3,
    concurrency_limit: int = 1,
    categories: Sequence[PatternCategory] = SIGNAL_CATEGORIES,
) -> List[List[SignalCount]]:
    """
    Extract signals for a batch of Observations in parallel.

    At most `concurrency_limit` extractions run at once. The result list is
    index-aligned with `observations` regardless of completion order.

    Args:
        observations: Observations in input order
        example_cap: Maximum matched substrings kept per category
        concurrency_limit: Maximum concurrent worker threads
        categories: Category table

    Returns:
        Per-Observation signal lists, index-aligned with the input
    """
    semaphore = asyncio.Semaphore(max(1, concurrency_limit))

    async def _extract(observation: Observation) -> List[SignalCount]:
        async with semaphore:
            return await asyncio.to_thread(
                extract_signals, observation, example_cap, categories
            )

    results = await asyncio.gather(*(_extract(o) for o in observations))
    logger.info(
        f"Extracted signals for {len(observations)} observations "
        f"(concurrency limit {concurrency_limit})"
    )
    return list(results)


__all__ = [
    "PatternCategory",
    "SIGNAL_CATEGORIES",
    "category_names",
    "category_weights",
    "validate_categories",
    "extract_signals",
    "extract_signals_batch",
]
