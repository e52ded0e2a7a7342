"""Plain-text renderings of target records for the command line."""

from datetime import UTC, datetime

from .models import TargetRecord


def _status_emoji(record: TargetRecord) -> str:
    return "✅" if record.is_up else "❌"


def format_time_ago(ts: datetime | None, now: datetime | None = None) -> str:
    """Describe how long ago ``ts`` was, e.g. "5 minutes ago" or "never"."""
    if ts is None:
        return "never"

    if now is None:
        now = datetime.now(UTC)
    seconds = int((now - ts).total_seconds())

    if seconds < 60:
        return f"{seconds} seconds ago"
    if seconds < 3600:
        return f"{seconds // 60} minutes ago"
    if seconds < 86400:
        return f"{seconds // 3600} hours ago"
    return f"{seconds // 86400} days ago"


def _days_left(expiry: datetime, now: datetime) -> int:
    return int((expiry - now).total_seconds() // 86400)


def format_target_list(records: dict[str, TargetRecord]) -> str:
    """One line per target: status, name and URL."""
    if not records:
        return "No servers"
    return "\n".join(
        f"{_status_emoji(record)} {record.name} [{record.url}]"
        for record in sorted(records.values(), key=lambda r: r.name)
    )


def format_stats(records: dict[str, TargetRecord], now: datetime | None = None) -> str:
    """Summary statistics for every target."""
    if not records:
        return "No servers"
    if now is None:
        now = datetime.now(UTC)

    blocks = []
    for record in sorted(records.values(), key=lambda r: r.name):
        lines = [
            f"{record.name} {_status_emoji(record)}",
            f"URL: {record.url}",
            f"Availability: {record.availability:.1f}%",
            f"Last success: {format_time_ago(record.last_success_at, now)}",
        ]
        if record.last_failure_at is not None:
            lines.append(f"Last failure: {format_time_ago(record.last_failure_at, now)}")
        if record.last_response_time_ms > 0:
            lines.append(f"Response time: {record.last_response_time_ms}ms")
        if record.ssl_expiry is not None:
            lines.append(f"SSL expires in: {_days_left(record.ssl_expiry, now)} days")
            if record.last_ssl_notification_at is not None:
                lines.append(f"Last SSL notification: {format_time_ago(record.last_ssl_notification_at, now)}")
        blocks.append("\n".join(lines))

    return "\n\n".join(blocks)


def format_details(record: TargetRecord, global_ssl_threshold: int, now: datetime | None = None) -> str:
    """Every stored field of one target."""
    if now is None:
        now = datetime.now(UTC)

    lines = [
        f"{record.name} {_status_emoji(record)}",
        "",
        f"URL: {record.url}",
        f"Availability: {record.availability:.1f}%",
        f"Total checks: {record.total_checks}",
        f"Successful checks: {record.successful_checks}",
        f"Last success: {format_time_ago(record.last_success_at, now)}",
        f"Last failure: {format_time_ago(record.last_failure_at, now)}",
    ]
    if record.last_response_time_ms > 0:
        lines.append(f"Last response time: {record.last_response_time_ms}ms")
    if record.response_time_threshold_ms > 0:
        lines.append(f"Response time threshold: {record.response_time_threshold_ms}ms")
    if record.expected_content:
        lines.append(f"Expected content: {record.expected_content}")
    if record.ssl_expiry is not None:
        lines.append(f"SSL expiry date: {record.ssl_expiry:%Y-%m-%d}")
        lines.append(f"SSL expires in: {_days_left(record.ssl_expiry, now)} days")
        if record.ssl_expiry_threshold_days > 0:
            lines.append(f"SSL threshold: {record.ssl_expiry_threshold_days} days")
        else:
            lines.append(f"SSL threshold: {global_ssl_threshold} days (global)")
        if record.last_ssl_notification_at is not None:
            lines.append(f"Last SSL notification: {format_time_ago(record.last_ssl_notification_at, now)}")

    return "\n".join(lines)
