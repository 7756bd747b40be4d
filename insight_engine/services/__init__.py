"""
Engine Services Module

Business logic of the intelligence engine. Every stage is a plain function
over immutable inputs; only the pipeline keeps per-run state.

Services:
- normalizer: raw records -> Observations plus a diagnostic report
- signals: pattern-category signal extraction
- aggregation: Observations and signals -> FeatureVector
- classification: FeatureVector -> Scenario via the rule table
- meta_analysis: phase segmentation, alignment and growth trajectory
- simulation: counterfactual efficiency projection
- insights: template catalog and insight synthesis
- sources: record source adapters with timeouts
- persistence: relational storage of run output
- pipeline: InsightEngine and the run state machine

All services are consumed by the API layer (insight_engine/api/).
"""

# =============================================================================
# Normalization
# =============================================================================
from insight_engine.services.normalizer import (
    normalize_record,
    normalize_batch,
    parse_timestamp,
    resolve_source,
    SOURCE_FIELD_MAPS,
)

# =============================================================================
# Signal Extraction
# =============================================================================
from insight_engine.services.signals import (
    PatternCategory,
    SIGNAL_CATEGORIES,
    extract_signals,
    extract_signals_batch,
)

# =============================================================================
# Aggregation and Classification
# =============================================================================
from insight_engine.services.aggregation import aggregate_features
from insight_engine.services.classification import (
    RuleTable,
    DEFAULT_SCENARIO_RULES,
    load_rule_table,
    get_default_rule_table,
)

# =============================================================================
# Meta Analysis, Simulation and Insights
# =============================================================================
from insight_engine.services.meta_analysis import analyze_history
from insight_engine.services.simulation import Heuristic, simulate_batch
from insight_engine.services.insights import (
    InsightTemplate,
    INSIGHT_TEMPLATES,
    SynthesisContext,
    synthesize_insights,
)

# =============================================================================
# Sources and Persistence
# =============================================================================
from insight_engine.services.sources import (
    RecordSource,
    StaticRecordSource,
    CsvRecordSource,
    PostgresRecordSource,
    ecosystem_sources,
    fetch_records,
)
from insight_engine.services.persistence import (
    persist_insights,
    persist_simulations,
    get_insights_for_run,
)

# =============================================================================
# Engine Operations
# =============================================================================
from insight_engine.services.pipeline import (
    AnalysisRun,
    InsightEngine,
    get_engine,
    run_analysis,
    run_analysis_from_sources,
    simulate,
    classify,
)

__all__ = [
    # Normalization
    'normalize_record',
    'normalize_batch',
    'parse_timestamp',
    'resolve_source',
    'SOURCE_FIELD_MAPS',
    # Signals
    'PatternCategory',
    'SIGNAL_CATEGORIES',
    'extract_signals',
    'extract_signals_batch',
    # Aggregation and classification
    'aggregate_features',
    'RuleTable',
    'DEFAULT_SCENARIO_RULES',
    'load_rule_table',
    'get_default_rule_table',
    # Meta analysis, simulation and insights
    'analyze_history',
    'Heuristic',
    'simulate_batch',
    'InsightTemplate',
    'INSIGHT_TEMPLATES',
    'SynthesisContext',
    'synthesize_insights',
    # Sources and persistence
    'RecordSource',
    'StaticRecordSource',
    'CsvRecordSource',
    'PostgresRecordSource',
    'ecosystem_sources',
    'fetch_records',
    'persist_insights',
    'persist_simulations',
    'get_insights_for_run',
    # Engine operations
    'AnalysisRun',
    'InsightEngine',
    'get_engine',
    'run_analysis',
    'run_analysis_from_sources',
    'simulate',
    'classify',
]
