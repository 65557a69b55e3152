"""
Fermentation telemetry backend.

Tracks coffee fermentation batches across farms and tanks, polls each active
batch's iSpindel feed, stores new readings and raises threshold alerts.

CHANGELOG:
- 2026-10-17: Initial creation (STORY-001)

TODO:
- None
"""
