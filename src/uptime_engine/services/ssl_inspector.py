from __future__ import annotations

import asyncio
import math
import ssl
from datetime import datetime, timezone
from urllib.parse import urlsplit

import structlog
from cryptography import x509
from cryptography.x509.oid import NameOID

from uptime_engine.schemas.ssl import SSLInfo

logger = structlog.get_logger(__name__)


def _split_target(host_or_url: str) -> tuple[str, int] | str:
    """Return ``(host, port)`` or an error message."""
    target = (host_or_url or "").strip()
    if "://" in target:
        parts = urlsplit(target)
        if parts.scheme.lower() != "https":
            return "URL is not HTTPS"
    else:
        parts = urlsplit(f"//{target}")
    try:
        port = parts.port or 443
    except ValueError:
        return "Invalid port"
    if not parts.hostname:
        return "Missing host"
    return parts.hostname, port


def _name_attr(name: x509.Name, oid: x509.ObjectIdentifier) -> str | None:
    attributes = name.get_attributes_for_oid(oid)
    return str(attributes[0].value) if attributes else None


def _unverified_context() -> ssl.SSLContext:
    # Only used to read the certificate of a server that failed verification
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class SSLInspector:
    """TLS handshake against a host to read certificate validity and expiry."""

    def __init__(self, timeout_seconds: float = 10.0, ca_file: str | None = None):
        self.timeout_seconds = timeout_seconds
        self.ca_file = ca_file

    async def _peer_certificate(self, host: str, port: int, context: ssl.SSLContext) -> bytes | None:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host=host, port=port, ssl=context, server_hostname=host),
            timeout=self.timeout_seconds,
        )
        try:
            ssl_object = writer.get_extra_info("ssl_object")
            return ssl_object.getpeercert(binary_form=True) if ssl_object else None
        finally:
            writer.close()

    async def inspect_tls(self, host_or_url: str) -> SSLInfo:
        """
        Inspect the certificate served for ``host_or_url``.

        Never raises. A certificate that fails verification (expired,
        self-signed, wrong host, untrusted issuer) is fetched again without
        verification so its dates and names are still reported, with
        ``valid=False`` and the verification message as ``error``.
        """
        target = _split_target(host_or_url)
        if isinstance(target, str):
            return SSLInfo.failed(target)
        host, port = target

        verify_error = None
        try:
            der = await self._peer_certificate(
                host, port, ssl.create_default_context(cafile=self.ca_file)
            )
        except ssl.SSLCertVerificationError as exc:
            verify_error = exc.verify_message or str(exc)
            logger.info("ssl_verification_failed", host=host, error=verify_error)
            try:
                der = await self._peer_certificate(host, port, _unverified_context())
            except (asyncio.TimeoutError, OSError, ssl.SSLError) as retry_exc:
                logger.info("ssl_unverified_fetch_failed", host=host, error=str(retry_exc))
                return SSLInfo.failed(verify_error)
        except asyncio.TimeoutError:
            return SSLInfo.failed(f"Timeout after {self.timeout_seconds}s")
        except (OSError, ssl.SSLError) as exc:
            logger.info("ssl_handshake_failed", host=host, error=str(exc))
            return SSLInfo.failed(str(exc) or type(exc).__name__)

        if not der:
            return SSLInfo.failed(verify_error or "No certificate presented")

        try:
            cert = x509.load_der_x509_certificate(der)
        except ValueError as exc:
            return SSLInfo.failed(verify_error or f"Unparseable certificate: {exc}")

        valid_from = cert.not_valid_before_utc
        valid_to = cert.not_valid_after_utc
        now = datetime.now(timezone.utc)
        days_until_expiry = math.floor((valid_to - now).total_seconds() / 86400)

        error = verify_error
        if error is None and now > valid_to:
            error = "Certificate expired"
        if error is None and now < valid_from:
            error = "Certificate not yet valid"

        return SSLInfo(
            valid=error is None,
            issuer=_name_attr(cert.issuer, NameOID.ORGANIZATION_NAME)
            or _name_attr(cert.issuer, NameOID.COMMON_NAME),
            subject=_name_attr(cert.subject, NameOID.COMMON_NAME),
            valid_from=valid_from,
            valid_to=valid_to,
            days_until_expiry=days_until_expiry,
            error=error,
        )
