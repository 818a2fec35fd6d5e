"""Prometheus metrics registry for Tuya LAN communication."""

import threading
from typing import Final

from prometheus_client import (  # type: ignore[import-untyped]
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

# Metric definitions
tuya_lan_packet_sent_total: Final = Counter(  # type: ignore[assignment]
    "tuya_lan_packet_sent_total",
    "Total frames sent",
    ["device_id", "command", "outcome"],
)

tuya_lan_packet_recv_total: Final = Counter(  # type: ignore[assignment]
    "tuya_lan_packet_recv_total",
    "Total frames received",
    ["device_id", "command"],
)

tuya_lan_request_latency_seconds: Final = Histogram(  # type: ignore[assignment]
    "tuya_lan_request_latency_seconds",
    "Request/response round-trip latency in seconds",
    ["device_id"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

tuya_lan_decode_errors_total: Final = Counter(  # type: ignore[assignment]
    "tuya_lan_decode_errors_total",
    "Total frames dropped as corrupt or undecryptable",
    ["device_id", "reason"],
)

tuya_lan_retry_attempts_total: Final = Counter(  # type: ignore[assignment]
    "tuya_lan_retry_attempts_total",
    "Total retry attempts",
    ["device_id", "attempt_number"],
)

tuya_lan_response_timeout_total: Final = Counter(  # type: ignore[assignment]
    "tuya_lan_response_timeout_total",
    "Total request attempts that saw no response",
    ["device_id"],
)

tuya_lan_request_abandoned_total: Final = Counter(  # type: ignore[assignment]
    "tuya_lan_request_abandoned_total",
    "Total requests abandoned after max attempts",
    ["device_id", "reason"],
)

tuya_lan_unmatched_response_total: Final = Counter(  # type: ignore[assignment]
    "tuya_lan_unmatched_response_total",
    "Total responses with no pending request",
    ["device_id"],
)

tuya_lan_connection_state: Final = Gauge(  # type: ignore[assignment]
    "tuya_lan_connection_state",
    "Current connection state",
    ["device_id", "state"],
)

tuya_lan_heartbeat_total: Final = Counter(  # type: ignore[assignment]
    "tuya_lan_heartbeat_total",
    "Total heartbeat frames sent and acknowledged",
    ["device_id", "outcome"],
)

tuya_lan_discovery_datagrams_total: Final = Counter(  # type: ignore[assignment]
    "tuya_lan_discovery_datagrams_total",
    "Total discovery datagrams received",
    ["outcome"],
)

_server_state = {"started": False}
_server_lock = threading.Lock()


def start_metrics_server(port: int = 9400) -> None:
    """Start Prometheus HTTP metrics server (idempotent)."""
    with _server_lock:
        if not _server_state["started"]:
            start_http_server(port)  # type: ignore[no-untyped-call]
            _server_state["started"] = True


def record_packet_sent(device_id: str, command: str, outcome: str) -> None:
    """Record a sent frame."""
    tuya_lan_packet_sent_total.labels(device_id=device_id, command=command, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_packet_recv(device_id: str, command: str) -> None:
    """Record a received frame."""
    tuya_lan_packet_recv_total.labels(device_id=device_id, command=command).inc()  # type: ignore[no-untyped-call]


def record_request_latency(device_id: str, latency_seconds: float) -> None:
    tuya_lan_request_latency_seconds.labels(device_id=device_id).observe(latency_seconds)  # type: ignore[no-untyped-call]


def record_decode_error(device_id: str, reason: str) -> None:
    """Record a dropped frame."""
    tuya_lan_decode_errors_total.labels(device_id=device_id, reason=reason).inc()  # type: ignore[no-untyped-call]


def record_retry_attempt(device_id: str, attempt_number: int) -> None:
    tuya_lan_retry_attempts_total.labels(
        device_id=device_id,
        attempt_number=str(attempt_number),
    ).inc()  # type: ignore[no-untyped-call]


def record_response_timeout(device_id: str) -> None:
    tuya_lan_response_timeout_total.labels(device_id=device_id).inc()  # type: ignore[no-untyped-call]


def record_request_abandoned(device_id: str, reason: str) -> None:
    """Record a request abandoned after max attempts."""
    tuya_lan_request_abandoned_total.labels(device_id=device_id, reason=reason).inc()  # type: ignore[no-untyped-call]


def record_unmatched_response(device_id: str) -> None:
    tuya_lan_unmatched_response_total.labels(device_id=device_id).inc()  # type: ignore[no-untyped-call]


def record_connection_state(device_id: str, state: str) -> None:
    """Record connection state change."""
    # Set gauge to 1 for current state, 0 for all others
    for s in ["disconnected", "connecting", "connected"]:
        value = 1 if s == state else 0
        tuya_lan_connection_state.labels(device_id=device_id, state=s).set(value)  # type: ignore[no-untyped-call]


def record_heartbeat(device_id: str, outcome: str) -> None:
    """Record a heartbeat send or acknowledgement."""
    tuya_lan_heartbeat_total.labels(device_id=device_id, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_discovery_datagram(outcome: str) -> None:
    tuya_lan_discovery_datagrams_total.labels(outcome=outcome).inc()  # type: ignore[no-untyped-call]
