"""Logging abstraction layer for tuya-lan.

Provides dual-format logging (JSON + human-readable) with correlation tracking,
structured context, and configurable output destinations. Every module in the
package logs through ``logger = get_logger(__name__)``, so request lines carry
the correlation id bound by ``ConnectionManager.send()``.

Handlers are only attached when TUYA_LOG_FORMAT is "json", "human" or "both";
the default "none" leaves output to the application's logging configuration.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import cast, override

from tuya_lan import const
from tuya_lan.correlation import get_correlation_id

__all__ = [
    "HumanReadableFormatter",
    "JSONFormatter",
    "TuyaLogger",
    "get_logger",
]

# Attributes every LogRecord has; anything else came in through ``extra=``
_RESERVED_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys() | {"message", "asctime", "correlation_id"},
)


def _record_context(record: logging.LogRecord) -> dict[str, object]:
    extra_data = getattr(record, "extra_data", None)
    if isinstance(extra_data, Mapping):
        return dict(cast("Mapping[str, object]", extra_data))
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RESERVED_RECORD_ATTRS and key != "extra_data" and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """Formatter that outputs structured JSON logs."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, object] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
        }

        context = _record_context(record)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Formatter that outputs human-readable logs with correlation IDs."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(name)s:%(lineno)d] %(correlation_id)s > %(message)s",
            datefmt="%m/%d/%y %H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        correlation_id = get_correlation_id()
        record.correlation_id = f"[{correlation_id[-8:]}]" if correlation_id else "[--------]"

        formatted = super().format(record)
        context = _record_context(record)
        if context:
            context_str = " | ".join(f"{k}={v}" for k, v in context.items())
            formatted = f"{formatted} | {context_str}"
        return formatted


def _human_handler(human_output: str | None) -> logging.Handler:
    target = human_output or "stderr"
    if target == "stdout":
        return logging.StreamHandler(sys.stdout)
    if target == "stderr":
        return logging.StreamHandler(sys.stderr)
    try:
        path = Path(target)
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path, mode="a")
    except OSError as e:
        print(f"Warning: Failed to create human log file {target}: {e}", file=sys.stderr)
        return logging.StreamHandler(sys.stderr)


class TuyaLogger:
    """Logger providing dual-format output with bound structured context.

    ``bind()`` returns a child logger that merges fixed context (for example a
    device id) into the ``extra`` of every call.
    """

    def __init__(
        self,
        name: str,
        log_format: str = "human",
        json_file: str | Path | None = None,
        human_output: str | None = "stderr",
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Initialize TuyaLogger.

        Args:
            name: Logger name (typically module or package name)
            log_format: Output format - "json", "human", or "both"
            json_file: Path for JSON output file (None to disable file output)
            human_output: "stdout", "stderr", or file path for human-readable output
            context: Context merged into every record's extra

        """
        self.name: str = name
        self.logger: logging.Logger = logging.getLogger(name)
        self.log_format: str = log_format
        self.context: dict[str, object] = dict(context or {})

        self.logger.setLevel(logging.DEBUG if const.TUYA_DEBUG else logging.INFO)

        # Don't add handlers if already configured (avoid duplicates)
        if not self.logger.handlers:
            self._configure_handlers(json_file, human_output)

    def _configure_handlers(self, json_file: str | Path | None, human_output: str | None) -> None:
        handler_level = self.logger.level

        if self.log_format in ("json", "both") and json_file:
            try:
                json_path = Path(json_file)
                json_path.parent.mkdir(parents=True, exist_ok=True)
                json_handler = logging.FileHandler(json_path, mode="a")
            except OSError as e:
                print(f"Warning: Failed to create JSON log file {json_file}: {e}", file=sys.stderr)
            else:
                json_handler.setFormatter(JSONFormatter())
                json_handler.setLevel(handler_level)
                self.logger.addHandler(json_handler)

        if self.log_format in ("human", "both"):
            human_handler = _human_handler(human_output)
            human_handler.setFormatter(HumanReadableFormatter())
            human_handler.setLevel(handler_level)
            self.logger.addHandler(human_handler)

    def bind(self, **context: object) -> TuyaLogger:
        """Return a logger sharing handlers with extra bound context."""
        child = TuyaLogger.__new__(TuyaLogger)
        child.name = self.name
        child.logger = self.logger
        child.log_format = self.log_format
        child.context = {**self.context, **context}
        return child

    def _extra(self, extra: Mapping[str, object] | None) -> dict[str, object] | None:
        merged = {**self.context, **(extra or {})}
        return {"extra_data": merged} if merged else None

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self.logger.debug(msg, *args, extra=self._extra(extra))

    def info(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self.logger.info(msg, *args, extra=self._extra(extra))

    def warning(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self.logger.warning(msg, *args, extra=self._extra(extra))

    def error(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self.logger.error(msg, *args, extra=self._extra(extra))

    def exception(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        """Log exception with traceback and optional structured context."""
        self.logger.exception(msg, *args, extra=self._extra(extra))

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)

    @property
    def handlers(self) -> list[logging.Handler]:
        return self.logger.handlers


def get_logger(
    name: str = "tuya_lan",
    log_format: str | None = None,
    json_file: str | Path | None = None,
    human_output: str | None = None,
) -> TuyaLogger:
    """Get or create a TuyaLogger using TUYA_LOG_* defaults for unset options.

    Example:
        logger = get_logger(__name__)
        logger.info("Connected", extra={"device_id": "bf1234"})
    """
    return TuyaLogger(
        name=name,
        log_format=log_format or const.TUYA_LOG_FORMAT,
        json_file=json_file or const.TUYA_LOG_JSON_FILE,
        human_output=human_output or const.TUYA_LOG_HUMAN_OUTPUT,
    )
