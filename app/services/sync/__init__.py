"""
Match Data Sync Service

Decides, per request, whether to serve a match from the local store, fetch it
from the upstream provider, merge partial updates, or degrade to stale data.

Key components:
- freshness: per-status staleness policy
- payloads: boundary validation of upstream items (lite vs full)
- merge: reshaping and merging upstream payloads into stored records
- dedupe: first-wins deduplication by match id
- orchestrator: the tiered decision procedure and scheduled sync
"""
