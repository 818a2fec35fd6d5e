import os

__all__ = [
    "DEFAULT_PORT",
    "DEFAULT_VERSION",
    "DISCOVERY_PORT",
    "SUPPORTED_VERSIONS",
    "TUYA_CONNECT_TIMEOUT",
    "TUYA_DEBUG",
    "TUYA_DISCOVERY_TIMEOUT",
    "TUYA_HEARTBEAT_INTERVAL",
    "TUYA_LOG_FORMAT",
    "TUYA_LOG_HUMAN_OUTPUT",
    "TUYA_LOG_JSON_FILE",
    "TUYA_MAX_ATTEMPTS",
    "TUYA_MAX_IN_FLIGHT",
    "TUYA_PERF_THRESHOLD_MS",
    "TUYA_PERF_TRACKING",
    "TUYA_RESPONSE_TIMEOUT",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


DEFAULT_PORT: int = 6668
DEFAULT_VERSION: str = "3.1"
SUPPORTED_VERSIONS: tuple[str, ...] = ("3.1", "3.2", "3.3", "3.4")
DISCOVERY_PORT: int = _env_int("TUYA_DISCOVERY_PORT", 6666)

TUYA_DEBUG: bool = os.environ.get("TUYA_DEBUG", "0").casefold() in YES_ANSWER

# Timing (seconds)
TUYA_CONNECT_TIMEOUT: float = _env_float("TUYA_CONNECT_TIMEOUT", 5.0)
TUYA_RESPONSE_TIMEOUT: float = _env_float("TUYA_RESPONSE_TIMEOUT", 5.0)
TUYA_HEARTBEAT_INTERVAL: float = _env_float("TUYA_HEARTBEAT_INTERVAL", 10.0)
TUYA_DISCOVERY_TIMEOUT: float = _env_float("TUYA_DISCOVERY_TIMEOUT", 10.0)

# Request layer
TUYA_MAX_ATTEMPTS: int = _env_int("TUYA_MAX_ATTEMPTS", 5)
# Keep well below the 32-bit sequence space so wraparound never meets a pending entry
TUYA_MAX_IN_FLIGHT: int = _env_int("TUYA_MAX_IN_FLIGHT", 32)

# Logging Configuration
TUYA_LOG_FORMAT: str = os.environ.get("TUYA_LOG_FORMAT", "none")  # "json", "human", "both" or "none"
TUYA_LOG_JSON_FILE: str | None = os.environ.get("TUYA_LOG_JSON_FILE") or None
TUYA_LOG_HUMAN_OUTPUT: str = os.environ.get("TUYA_LOG_HUMAN_OUTPUT", "stderr")  # "stdout", "stderr", or file path

# Performance Instrumentation
TUYA_PERF_TRACKING: bool = os.environ.get("TUYA_PERF_TRACKING", "true").casefold() in YES_ANSWER
_perf_threshold = os.environ.get("TUYA_PERF_THRESHOLD_MS", "500")
TUYA_PERF_THRESHOLD_MS: int = int(_perf_threshold) if _perf_threshold and _perf_threshold.isdigit() else 500
