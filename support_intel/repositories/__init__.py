"""
Repositories package for durable storage

Provides repository classes for:
- ytd_tickets table (TicketRepository)
- snapshots table (SnapshotWriter)
- system_config table (SystemConfigRepository)
"""
