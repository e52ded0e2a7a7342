"""Check cycle orchestration: probe, fold statistics, alert, persist."""

import logging
import math
import threading
import time
from datetime import UTC, datetime, timedelta

from .alerter import (
    AlertStateTracker,
    format_down_message,
    format_slow_message,
    format_ssl_message,
    format_up_message,
)
from .config import MonitorConfig
from .models import ProbeResult, TargetRecord
from .notifier import NotificationError, TelegramNotifier
from .prober import probe
from .report import format_time_ago
from .storage import StorageError, TargetStore

logger = logging.getLogger(__name__)

# Minimum time between two SSL expiry warnings for the same target.
SSL_NOTIFICATION_INTERVAL = timedelta(hours=24)


def _now() -> datetime:
    return datetime.now(UTC)


def should_send_ssl_notification(last_notification: datetime | None, now: datetime) -> bool:
    """Whether the SSL warning dedup window for a target has elapsed."""
    return last_notification is None or now - last_notification > SSL_NOTIFICATION_INTERVAL


def days_until(expiry: datetime, now: datetime) -> int:
    """Whole days from ``now`` until ``expiry``, rounded down (negative once expired)."""
    return math.floor((expiry - now).total_seconds() / 3600 / 24)


class Monitor:
    """Runs check cycles over every stored target.

    A cycle walks the targets one at a time: probe, update statistics, send
    SSL/down/slow/up notifications as needed, then persist the whole
    collection before moving on. ``start()`` runs cycles on a fixed interval
    in a background thread; ``run_cycle()`` can also be called directly.

    Example:
        monitor = Monitor(config.monitor, store, notifier)
        monitor.start()
        # ... later ...
        monitor.stop()
    """

    def __init__(
        self,
        config: MonitorConfig,
        store: TargetStore,
        notifier: TelegramNotifier,
        tracker: AlertStateTracker | None = None,
    ) -> None:
        """Initialize the monitor.

        Args:
            config: Cycle settings (interval, thresholds, probe timeout).
            store: Target record store, loaded and saved every cycle.
            notifier: Sink for alert messages; anything with ``send(text)``.
            tracker: Alert state to use; a fresh one is created if omitted.
        """
        self._config = config
        self._store = store
        self._notifier = notifier
        self._tracker = tracker if tracker is not None else AlertStateTracker()
        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def tracker(self) -> AlertStateTracker:
        return self._tracker

    def start(self) -> None:
        """Start the scheduler loop in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Monitor already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, daemon=True, name="monitor-loop")
        self._thread.start()
        logger.info("Monitor started, checking every %ds", self._config.interval)

    def stop(self, timeout: float = 10.0) -> None:
        """Stop the scheduler loop, waiting for an in-flight cycle up to ``timeout``."""
        if self._thread is None or not self._thread.is_alive():
            return

        logger.info("Stopping monitor...")
        self._stop_event.set()
        self._thread.join(timeout=timeout)

        if self._thread.is_alive():
            logger.warning("Monitor thread did not stop within timeout")
        else:
            logger.info("Monitor stopped")

    def is_running(self) -> bool:
        """Check if the scheduler loop is currently running."""
        return self._thread is not None and self._thread.is_alive()

    def _run_loop(self) -> None:
        """Scheduler loop: one cycle per interval, first one immediately."""
        logger.debug("Monitor loop started")

        while not self._stop_event.is_set():
            next_run = time.monotonic() + self._config.interval
            try:
                self.run_cycle()
            except Exception as e:
                logger.exception("Check cycle failed: %s", e)
            self._stop_event.wait(timeout=max(0.0, next_run - time.monotonic()))

        logger.debug("Monitor loop exited")

    def run_cycle(self, alert_threshold: int | None = None) -> None:
        """Check every stored target once.

        Overlapping calls are serialized. A failed save is logged and the
        cycle moves on to the next target.

        Args:
            alert_threshold: Consecutive failures that trigger a down alert;
                defaults to the configured value.
        """
        threshold = alert_threshold if alert_threshold is not None else self._config.alert_threshold

        with self._cycle_lock:
            state = self._tracker.snapshot()
            logger.debug(
                "Check cycle started (failures: %s, active alerts: %s)",
                state.consecutive_failures,
                state.alert_active,
            )

            records = self._store.load()
            for record in list(records.values()):
                self._check_target(record, threshold)

                try:
                    self._store.save(records)
                except StorageError as e:
                    logger.error("Error while saving checks data after %s: %s", record.name, e)
                    continue

            logger.debug("Check cycle finished (%d targets)", len(records))

    def _check_target(self, record: TargetRecord, alert_threshold: int) -> None:
        """Probe one target and apply all statistics and alert rules to it."""
        result = probe(record.url, record.expected_content, timeout=self._config.http_timeout)
        now = _now()

        record.record_probe(result, now)
        logger.debug(
            "%s: %s (%sms)",
            record.name,
            "UP" if result.ok else "DOWN",
            result.latency_ms if result.latency_ms is not None else "-",
        )

        if result.ssl_expiry is not None:
            record.ssl_expiry = result.ssl_expiry
            self._check_ssl_expiry(record, now)

        if result.ok:
            self._handle_up(record)
        else:
            self._handle_down(record, result, alert_threshold)

    def _check_ssl_expiry(self, record: TargetRecord, now: datetime) -> None:
        """Warn when the certificate is inside its expiry window, at most once per 24h."""
        threshold = record.ssl_expiry_threshold_days or self._config.ssl_expiry_alert_days
        days_to_expiry = days_until(record.ssl_expiry, now)

        if not 0 <= days_to_expiry < threshold:
            return

        if not should_send_ssl_notification(record.last_ssl_notification_at, now):
            logger.debug(
                "Skipping SSL notification for %s, last notification was %s",
                record.url,
                format_time_ago(record.last_ssl_notification_at, now),
            )
            return

        if self._notify(format_ssl_message(record.url, days_to_expiry, threshold), "SSL expiry"):
            record.last_ssl_notification_at = now
            logger.info("Sent SSL expiry notification for %s, will expire in %d days", record.url, days_to_expiry)

    def _handle_down(self, record: TargetRecord, result: ProbeResult, alert_threshold: int) -> None:
        count = self._tracker.record_failure(record.name)
        logger.info("Server %s is down %d times: %s", record.url, count, result.error_message)

        if count >= alert_threshold:
            self._notify(format_down_message(record.url, result.error_message), "down alert")
            # Armed even if the send failed; the counter restarts, so an
            # unresolved outage alerts again after another alert_threshold failures.
            self._tracker.arm_alert(record.name)

    def _handle_up(self, record: TargetRecord) -> None:
        threshold_ms = record.response_time_threshold_ms
        if threshold_ms > 0 and record.last_response_time_ms > threshold_ms:
            logger.warning(
                "Server %s response time %dms exceeds %dms",
                record.url,
                record.last_response_time_ms,
                threshold_ms,
            )
            self._notify(format_slow_message(record.url, record.last_response_time_ms, threshold_ms), "slow response")

        was_alert_active, _ = self._tracker.record_success(record.name)
        if was_alert_active:
            logger.info("Server %s recovered", record.url)
            self._notify(format_up_message(record.url), "recovery")

    def _notify(self, text: str, kind: str) -> bool:
        """Send a message, logging instead of raising on failure.

        Returns:
            True if the message was delivered.
        """
        try:
            self._notifier.send(text)
        except NotificationError as e:
            logger.error("Failed to send %s message: %s", kind, e)
            return False
        return True
