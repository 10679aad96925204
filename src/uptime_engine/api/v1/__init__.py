from __future__ import annotations

from uptime_engine.api.v1 import incidents, monitors, webhooks

__all__ = [
    "incidents",
    "monitors",
    "webhooks",
]
