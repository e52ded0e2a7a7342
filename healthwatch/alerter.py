"""Alert state tracking and notification texts."""

import threading
from dataclasses import dataclass, field


@dataclass
class AlertState:
    """Per-process alert bookkeeping, keyed by target name."""

    consecutive_failures: dict[str, int] = field(default_factory=dict)  # {name: count}
    alert_active: dict[str, bool] = field(default_factory=dict)  # {name: down alert sent}


class AlertStateTracker:
    """Lock-guarded failure counters and armed-alert flags.

    Every method is a single read-modify-write under one lock. Callers do
    their network I/O (probes, notifications) outside of it.
    """

    def __init__(self) -> None:
        self._state = AlertState()
        self._lock = threading.Lock()

    def record_failure(self, name: str) -> int:
        """Count a failed probe and return the new consecutive failure count."""
        with self._lock:
            count = self._state.consecutive_failures.get(name, 0) + 1
            self._state.consecutive_failures[name] = count
            return count

    def record_success(self, name: str) -> tuple[bool, int]:
        """Clear the failure count and any armed alert for ``name``.

        Returns:
            Tuple of (was_alert_active, cleared_failure_count).
        """
        with self._lock:
            was_active = self._state.alert_active.get(name, False)
            cleared = self._state.consecutive_failures.get(name, 0)
            self._state.alert_active[name] = False
            self._state.consecutive_failures[name] = 0
            return was_active, cleared

    def arm_alert(self, name: str) -> None:
        """Mark a down alert as sent and restart the failure count."""
        with self._lock:
            self._state.alert_active[name] = True
            self._state.consecutive_failures[name] = 0

    def reset(self) -> None:
        """Forget all tracked targets."""
        with self._lock:
            self._state = AlertState()

    def snapshot(self) -> AlertState:
        """Return a copy of the current state."""
        with self._lock:
            return AlertState(
                consecutive_failures=dict(self._state.consecutive_failures),
                alert_active=dict(self._state.alert_active),
            )


def format_down_message(url: str, reason: str | None) -> str:
    return f"❗❗❗ Server {url} is down ❗❗❗\nReason: {reason or 'unknown'}"


def format_up_message(url: str) -> str:
    return f"✅ Server {url} is up 🎉"


def format_slow_message(url: str, response_time_ms: int, threshold_ms: int) -> str:
    return f"⚠️ Server {url} response time is slow: {response_time_ms}ms (threshold: {threshold_ms}ms)"


def format_ssl_message(url: str, days_to_expiry: int, threshold_days: int) -> str:
    return f"⚠️ SSL certificate for {url} will expire in {days_to_expiry} days (threshold: {threshold_days} days)"
