"""
Services module for match synchronization.

This module organizes services into:
- core: Transport-level building blocks (upstream HTTP client, retry combinator)
- sync: Match sync logic (freshness, payload parsing, merge, dedupe, orchestration)
"""
