"""
Notification Listener - Test Suite

Unit and integration tests for the notification capture pipeline.

Test Organization:
- test_models.py: Pydantic models and the wire format
- test_extract.py: Log line recognizers
- test_enrich.py: Live enrichment and merging
- test_sources.py: Tail, store and bus sources
- test_correlator.py: Filtering and record construction
- test_sinks.py: File, stdout and webhook sinks
- test_pipeline.py: End-to-end orchestration and shutdown
- test_config.py, test_utils.py, test_cli.py: Ambient stack

Fixtures are in tests/fixtures/:
- factories.py: Observation, record and log line factories
- fakes.py: In-memory line source, store, live source and sinks

Run tests:
    $ pdm run pytest tests/ -v
"""
