"""
API routes.

This module organizes routes into:
- market: match listings and single-match lookups (public)
- sync: sync triggers, sync health and scheduler status (bearer token)
"""
