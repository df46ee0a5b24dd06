import logging

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)


class Metrics:
    def __init__(self, enabled: bool = False) -> None:
        self._configure(enabled)

    def _configure(self, enabled: bool) -> None:
        self.enabled = enabled
        self.registry = CollectorRegistry(auto_describe=True)
        if not enabled:
            self.notification_attempts = None
            self.correlation_results = None
            self.automation_calls = None
            self.activity_write_failures = None
            self.bookings = None
            self.http_5xx = None
            self.http_latency = None
            return

        self.notification_attempts = Counter(
            "notification_attempts_total",
            "Notification delivery attempts by channel, audience and outcome.",
            ["channel", "audience", "outcome"],
            registry=self.registry,
        )
        self.correlation_results = Counter(
            "correlation_results_total",
            "Inbound email correlation results by matching strategy.",
            ["strategy"],
            registry=self.registry,
        )
        self.automation_calls = Counter(
            "automation_calls_total",
            "Outbound automation and webhook calls by target and outcome.",
            ["target", "outcome"],
            registry=self.registry,
        )
        self.activity_write_failures = Counter(
            "activity_write_failures_total",
            "Activity log writes that failed and were dropped.",
            registry=self.registry,
        )
        self.bookings = Counter(
            "bookings_total",
            "Booking lifecycle actions.",
            ["action"],
            registry=self.registry,
        )
        self.http_5xx = Counter(
            "http_5xx_total",
            "HTTP responses with status >= 500.",
            ["method", "path"],
            registry=self.registry,
        )
        self.http_latency = Histogram(
            "http_request_latency_seconds",
            "HTTP request latency by method, route template, and status class.",
            ["method", "path", "status_class"],
            registry=self.registry,
        )

    def record_notification(self, channel: str, audience: str, outcome: str) -> None:
        if not self.enabled or self.notification_attempts is None:
            return
        self.notification_attempts.labels(
            channel=channel or "unknown", audience=audience or "unknown", outcome=outcome
        ).inc()

    def record_correlation(self, strategy: str | None) -> None:
        if not self.enabled or self.correlation_results is None:
            return
        self.correlation_results.labels(strategy=strategy or "unresolved").inc()

    def record_automation_call(self, target: str, outcome: str) -> None:
        if not self.enabled or self.automation_calls is None:
            return
        self.automation_calls.labels(target=target, outcome=outcome).inc()

    def record_activity_write_failure(self) -> None:
        if not self.enabled or self.activity_write_failures is None:
            return
        self.activity_write_failures.inc()

    def record_booking(self, action: str, count: int = 1) -> None:
        if not self.enabled or self.bookings is None:
            return
        if count <= 0:
            return
        self.bookings.labels(action=action).inc(count)

    def record_http_5xx(self, method: str, path: str) -> None:
        if not self.enabled or self.http_5xx is None:
            return
        self.http_5xx.labels(method=method, path=path).inc()

    def record_http_latency(self, method: str, path: str, status_code: int, duration_seconds: float) -> None:
        if not self.enabled or self.http_latency is None:
            return
        status_class = f"{status_code // 100}xx" if status_code else "unknown"
        duration_seconds = max(0.0, float(duration_seconds))
        self.http_latency.labels(method=method, path=path, status_class=status_class).observe(
            duration_seconds
        )

    def render(self) -> tuple[bytes, str]:
        if not self.enabled:
            return b"metrics_disabled 1\n", "text/plain; version=0.0.4"
        try:
            return generate_latest(self.registry), CONTENT_TYPE_LATEST
        except Exception:  # noqa: BLE001
            logger.exception("metrics_render_failed")
            return b"metrics_render_failed 1\n", "text/plain; version=0.0.4"


metrics = Metrics(enabled=False)


def configure_metrics(enabled: bool) -> Metrics:
    metrics._configure(enabled)
    return metrics
