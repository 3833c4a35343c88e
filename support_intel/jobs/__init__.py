"""
Scheduled jobs: urgent ticket monitor, weekly ingestion, daily snapshot refresh
"""
