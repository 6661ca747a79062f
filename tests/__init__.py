"""
Test Suite

Contains unit tests for the aggregation core and the provider adapters.

Structure:
- tests/unit/: Tests for individual components (identity codec, registry, prober, router, adapters)

Uses pytest with pytest-asyncio for testing async functionality. No test touches the network:
HTTP sessions and provider API clients are replaced by fakes.
"""
