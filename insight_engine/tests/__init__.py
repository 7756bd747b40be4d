'''
Insight Engine Test Suite

Test Modules:
-------------
- test_normalizer.py: raw record normalization and exclusion reporting
- test_signals.py: pattern-category extraction and bounded concurrency
- test_aggregation.py: FeatureVector construction
- test_classification.py: rule table loading and evaluation
- test_simulation.py: counterfactual simulation
- test_meta_analysis.py: phases, alignment and growth trajectory
- test_insights.py: template catalog and ranking
- test_pipeline.py: end-to-end runs and the run state machine
- test_sources.py: record sources and timeouts
- test_persistence.py: insight and simulation upserts
- test_api.py: HTTP endpoints

Run with: pytest insight_engine/tests
'''
