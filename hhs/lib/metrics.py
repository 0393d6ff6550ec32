"""
Prometheus-compatible metrics for observability.

Tracks key booking-platform indicators:
- Bookings created and status transitions (by from/to status)
- Review submissions (created, updated, deleted)
- Authentication events (register, login, refresh; success/failure)
- Notification deliveries (by kind and status)
- Confirmation code collisions

Usage:
    from hhs.lib.metrics import get_metrics_collector

    metrics = get_metrics_collector()
    metrics.increment_bookings_created(consultation_type="VIRTUAL")
    metrics.increment_transitions(from_status="PENDING", to_status="CONFIRMED")

    # Export for Prometheus
    prometheus_output = metrics.export_prometheus()
"""

from typing import Dict, Tuple
from threading import Lock


class MetricsCollector:
    """
    Prometheus-style metrics collector.

    Counters:
    - bookings_created_total (labels: consultation_type)
    - booking_transitions_total (labels: from, to)
    - reviews_submitted_total (labels: outcome)
    - auth_events_total (labels: event, outcome)
    - notifications_total (labels: kind, status)
    - confirmation_code_collisions_total

    Thread-safe for concurrent increments.
    """

    def __init__(self):
        self._lock = Lock()

        # Counters: key = (metric_name, labels_tuple), value = count
        self._counters: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], int] = {}

    def _get_counter_key(self, metric_name: str, labels: Dict[str, str]) -> Tuple[str, Tuple[Tuple[str, str], ...]]:
        """Generate unique key for counter with sorted labels."""
        sorted_labels = tuple(sorted(labels.items()))
        return (metric_name, sorted_labels)

    def _increment(self, metric_name: str, labels: Dict[str, str], amount: int = 1):
        """Thread-safe increment of counter."""
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def _get_value(self, metric_name: str, labels: Dict[str, str]) -> int:
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            return self._counters.get(key, 0)

    # ===== Booking Metrics =====

    def increment_bookings_created(self, consultation_type: str, amount: int = 1):
        labels = {"consultation_type": consultation_type.upper()}
        self._increment("bookings_created_total", labels, amount)

    def increment_transitions(self, from_status: str, to_status: str, amount: int = 1):
        """
        Increment booking status transition counter.

        Args:
            from_status: Status before the transition
            to_status: Status after the transition
            amount: Increment amount (default 1)
        """
        labels = {"from": from_status.upper(), "to": to_status.upper()}
        self._increment("booking_transitions_total", labels, amount)

    def increment_code_collisions(self, amount: int = 1):
        self._increment("confirmation_code_collisions_total", {}, amount)

    # ===== Review Metrics =====

    def increment_reviews(self, outcome: str, amount: int = 1):
        """Increment review counter (outcome: created, updated, deleted)."""
        self._increment("reviews_submitted_total", {"outcome": outcome.lower()}, amount)

    # ===== Auth Metrics =====

    def increment_auth_events(self, event: str, outcome: str = "success", amount: int = 1):
        labels = {"event": event.lower(), "outcome": outcome.lower()}
        self._increment("auth_events_total", labels, amount)

    # ===== Notification Metrics =====

    def increment_notifications(self, kind: str, status: str = "sent", amount: int = 1):
        """
        Increment notification delivery counter.

        Args:
            kind: Notification kind (welcome, booking_confirmation)
            status: Delivery status (sent, failed)
            amount: Increment amount
        """
        labels = {"kind": kind.lower(), "status": status.lower()}
        self._increment("notifications_total", labels, amount)

    # ===== Export =====

    def export_prometheus(self) -> str:
        """
        Export all metrics in Prometheus text format.

        Returns:
            Prometheus-compatible text output
        """
        output_lines = []

        metrics_by_name: Dict[str, list] = {}
        with self._lock:
            for (metric_name, labels_tuple), value in self._counters.items():
                metrics_by_name.setdefault(metric_name, []).append((dict(labels_tuple), value))

        for metric_name in sorted(metrics_by_name.keys()):
            help_text = self._get_help_text(metric_name)
            output_lines.append(f"# HELP {metric_name} {help_text}")
            output_lines.append(f"# TYPE {metric_name} counter")

            for labels_dict, value in sorted(metrics_by_name[metric_name], key=lambda x: str(x[0])):
                if labels_dict:
                    labels_str = ",".join([f'{k}="{v}"' for k, v in sorted(labels_dict.items())])
                    output_lines.append(f"{metric_name}{{{labels_str}}} {value}")
                else:
                    output_lines.append(f"{metric_name} {value}")

            output_lines.append("")  # Blank line between metrics

        return "\n".join(output_lines)

    def _get_help_text(self, metric_name: str) -> str:
        help_texts = {
            "bookings_created_total": "Total number of bookings created",
            "booking_transitions_total": "Total number of booking status transitions",
            "reviews_submitted_total": "Total number of review upserts and deletions",
            "auth_events_total": "Total number of authentication events",
            "notifications_total": "Total number of notification delivery attempts",
            "confirmation_code_collisions_total": "Total number of confirmation code collisions",
        }
        return help_texts.get(metric_name, "Counter metric")

    def get_counter_value(self, metric_name: str, labels: Dict[str, str]) -> int:
        """
        Get current value of a specific counter.

        Args:
            metric_name: Name of the metric
            labels: Label filters

        Returns:
            Current counter value
        """
        return self._get_value(metric_name, labels)

    def reset_all(self):
        """Reset all counters (for testing)."""
        with self._lock:
            self._counters.clear()


# Global singleton instance
_metrics_collector: MetricsCollector | None = None
_metrics_lock = Lock()


def get_metrics_collector() -> MetricsCollector:
    """Get global metrics collector singleton."""
    global _metrics_collector
    if _metrics_collector is None:
        with _metrics_lock:
            if _metrics_collector is None:
                _metrics_collector = MetricsCollector()
    return _metrics_collector


def reset_metrics():
    """Reset global metrics collector (for testing)."""
    global _metrics_collector
    with _metrics_lock:
        if _metrics_collector is not None:
            _metrics_collector.reset_all()
