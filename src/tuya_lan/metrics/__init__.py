"""Metrics module."""

from .registry import (
    record_decode_error,
    record_packet_recv,
    record_packet_sent,
    record_request_latency,
    start_metrics_server,
)

__all__ = [
    "record_decode_error",
    "record_packet_recv",
    "record_packet_sent",
    "record_request_latency",
    "start_metrics_server",
]
