"""
Support Intelligence Pipeline

Freshdesk ticket ingestion, idempotent snapshots and metrics aggregation.
"""
__version__ = "1.0.0"
