"""
Prometheus metrics for the studio booking engine.

Service timings come from the @measure_operation decorator; policy
decisions are counted per action and outcome so surfaces can chart how
often clients are turned away and why.
"""

from typing import Iterable, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

# Custom registry so the engine never collides with a host application's metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "studiobook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "studiobook_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "studiobook_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

policy_decisions_total = Counter(
    "studiobook_policy_decisions_total",
    "Booking policy decisions by action and outcome",
    ["action", "outcome"],
    registry=REGISTRY,
)

policy_violations_total = Counter(
    "studiobook_policy_violations_total",
    "Booking policy violations by rule",
    ["action", "violation"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'ShiftRegistry')
            operation: Operation/method name (e.g., 'add_shift')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_policy_decision(action: str, allowed: bool, violations: Iterable[str] = ()) -> None:
        """Count a policy verdict and each rule that refused it."""
        policy_decisions_total.labels(
            action=action, outcome="allowed" if allowed else "denied"
        ).inc()
        for violation in violations:
            policy_violations_total.labels(action=action, violation=violation).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """
        Generate Prometheus metrics in exposition format.

        Returns:
            Metrics data in Prometheus text format
        """
        return generate_latest(REGISTRY)


prometheus_metrics = PrometheusMetrics()
