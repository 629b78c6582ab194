"""
Test Suite

Contains unit tests for the price engine.

Structure:
- tests/unit/: Tests for individual components (sources, FX, consolidation,
  filtering, aggregation, confidence, history) and the HTTP routes

Uses pytest with pytest-asyncio for testing async functionality. No test
reaches the network: HTTP and sources are replaced by scripted fakes.
"""
