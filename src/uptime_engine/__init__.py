"""Uptime check scheduling, incident tracking, escalation and notification engine."""

__version__ = "1.0.0"
