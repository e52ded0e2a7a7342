"""Data models for probe outcomes and monitored targets."""

from dataclasses import dataclass
from datetime import UTC, datetime


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a single HTTP probe.

    Attributes:
        ok: Whether the probe counts as a success (2xx and content matched).
        status_code: HTTP status code, or None if no response was received.
        latency_ms: Time until response headers arrived, or None on connection failure.
        content_matched: True when expected content was required and found.
        ssl_expiry: Leaf certificate expiry for https targets, or None if unknown.
        error_message: Short diagnostic when the probe failed, None otherwise.
    """

    ok: bool
    status_code: int | None = None
    latency_ms: int | None = None
    content_matched: bool = False
    ssl_expiry: datetime | None = None
    error_message: str | None = None


def _parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 timestamp from the store, None for missing values."""
    if not value or not isinstance(value, str):
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class TargetRecord:
    """Persisted configuration and running statistics for one monitored URL.

    ``name`` is the identity of the record and the key used by the alert
    state tracker; it is never changed after the record is created.
    """

    name: str
    url: str
    is_up: bool = False
    last_success_at: datetime | None = None
    last_failure_at: datetime | None = None
    expected_content: str = ""
    response_time_threshold_ms: int = 0
    last_response_time_ms: int = 0
    ssl_expiry: datetime | None = None
    ssl_expiry_threshold_days: int = 0
    last_ssl_notification_at: datetime | None = None
    total_checks: int = 0
    successful_checks: int = 0

    @property
    def availability(self) -> float:
        """Percentage of successful checks, 0 when never checked."""
        if self.total_checks == 0:
            return 0.0
        return self.successful_checks / self.total_checks * 100

    def record_probe(self, result: ProbeResult, now: datetime) -> None:
        """Fold a probe outcome into the running statistics."""
        self.total_checks += 1
        if result.ok:
            self.last_success_at = now
            self.successful_checks += 1
        else:
            self.last_failure_at = now
        self.is_up = result.ok
        self.last_response_time_ms = result.latency_ms or 0

    def to_dict(self) -> dict:
        """Serialize to the JSON document layout used by the store."""
        return {
            "name": self.name,
            "url": self.url,
            "isOk": self.is_up,
            "lastSuccess": _format_timestamp(self.last_success_at),
            "lastFailure": _format_timestamp(self.last_failure_at),
            "expectedContent": self.expected_content,
            "responseTimeThreshold": self.response_time_threshold_ms,
            "lastResponseTime": self.last_response_time_ms,
            "sslExpiryDate": _format_timestamp(self.ssl_expiry),
            "sslExpiryThreshold": self.ssl_expiry_threshold_days,
            "lastSSLNotification": _format_timestamp(self.last_ssl_notification_at),
            "availability": self.availability,
            "totalChecks": self.total_checks,
            "successfulChecks": self.successful_checks,
        }

    @classmethod
    def from_dict(cls, data: dict, name: str | None = None) -> "TargetRecord":
        """Build a record from its stored JSON form.

        ``availability`` is ignored on load; it is always derived from the
        counters.

        Raises:
            ValueError: If required fields are missing or malformed.
        """
        record_name = data.get("name") or name
        url = data.get("url")
        if not record_name:
            raise ValueError("target record is missing 'name'")
        if not url:
            raise ValueError(f"target record '{record_name}' is missing 'url'")

        total = int(data.get("totalChecks", 0))
        successful = int(data.get("successfulChecks", 0))
        if successful > total:
            raise ValueError(
                f"target record '{record_name}' has more successful checks ({successful}) than total ({total})"
            )

        return cls(
            name=str(record_name),
            url=str(url),
            is_up=bool(data.get("isOk", False)),
            last_success_at=_parse_timestamp(data.get("lastSuccess")),
            last_failure_at=_parse_timestamp(data.get("lastFailure")),
            expected_content=str(data.get("expectedContent") or ""),
            response_time_threshold_ms=int(data.get("responseTimeThreshold") or 0),
            last_response_time_ms=int(data.get("lastResponseTime") or 0),
            ssl_expiry=_parse_timestamp(data.get("sslExpiryDate")),
            ssl_expiry_threshold_days=int(data.get("sslExpiryThreshold") or 0),
            last_ssl_notification_at=_parse_timestamp(data.get("lastSSLNotification")),
            total_checks=total,
            successful_checks=successful,
        )
