from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class SSLInfo(BaseModel):
    """Certificate data from one TLS handshake."""

    valid: bool
    issuer: str | None = None
    subject: str | None = None
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    days_until_expiry: int | None = None
    error: str | None = None

    @classmethod
    def failed(cls, error: str) -> SSLInfo:
        return cls(valid=False, error=error)
