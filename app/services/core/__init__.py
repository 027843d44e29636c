"""
Core services shared by every sync flow.

- retry: generic retry-with-backoff combinator
- upstream_client: HTTP client for the upstream prediction/odds provider
"""
from app.services.core.retry import retry_with_backoff
from app.services.core.upstream_client import UpstreamClient

__all__ = [
    "retry_with_backoff",
    "UpstreamClient",
]
