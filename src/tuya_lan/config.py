"""Validated device configuration."""

from __future__ import annotations

import ipaddress
from typing import TYPE_CHECKING, Any, Self

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from tuya_lan.const import DEFAULT_PORT, DEFAULT_VERSION, SUPPORTED_VERSIONS
from tuya_lan.logging_abstraction import get_logger
from tuya_lan.protocol.exceptions import TuyaProtocolError

if TYPE_CHECKING:
    from tuya_lan.discovery.listener import DiscoveredDevice

KEY_LENGTH = 16

logger = get_logger(__name__)


class ConfigError(TuyaProtocolError):
    """Device configuration is invalid.

    Attributes:
        reason: Human-readable description of every failed check
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid device config: {reason}")


class DeviceConfig(BaseModel):
    """Connection parameters for one device.

    Instances are immutable; ``adopt()`` returns an updated copy with values
    learned from discovery.
    """

    model_config = ConfigDict(frozen=True)

    ip: str | None = None
    port: int = DEFAULT_PORT
    id: str | None = None
    gw_id: str | None = None
    key: str
    product_key: str | None = None
    version: str = DEFAULT_VERSION

    @field_validator("ip", "id", "gw_id", "product_key", mode="before")
    @classmethod
    def _empty_as_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("ip")
    @classmethod
    def _valid_ip(cls, value: str | None) -> str | None:
        if value is not None:
            ipaddress.ip_address(value)
        return value

    @field_validator("port")
    @classmethod
    def _valid_port(cls, value: int) -> int:
        if not 0 < value < 65536:
            msg = f"port out of range: {value}"
            raise ValueError(msg)
        return value

    @field_validator("key")
    @classmethod
    def _valid_key(cls, value: str) -> str:
        # The cipher uses the key's latin-1 bytes as the AES key
        try:
            key_bytes = value.encode("latin-1")
        except UnicodeEncodeError as e:
            msg = "key must contain only latin-1 characters"
            raise ValueError(msg) from e
        if len(key_bytes) != KEY_LENGTH:
            msg = f"key must be exactly {KEY_LENGTH} characters"
            raise ValueError(msg)
        return value

    @field_validator("version", mode="before")
    @classmethod
    def _normalize_version(cls, value: Any) -> str:
        # 3.3 as a float is the common way versions are written in configs
        if isinstance(value, int | float) and not isinstance(value, bool):
            value = f"{value:.1f}"
        value = str(value)
        if value not in SUPPORTED_VERSIONS:
            msg = f"unsupported protocol version {value!r} (supported: {', '.join(SUPPORTED_VERSIONS)})"
            raise ValueError(msg)
        return value

    @model_validator(mode="before")
    @classmethod
    def _default_gateway(cls, data: Any) -> Any:
        # gw_id defaults to id
        if isinstance(data, dict) and not data.get("gw_id") and data.get("id"):
            return {**data, "gw_id": data["id"]}
        return data

    @model_validator(mode="after")
    def _id_or_ip(self) -> Self:
        if self.id is None and self.ip is None:
            msg = "ID and IP are missing from device"
            raise ValueError(msg)
        return self

    @classmethod
    def create(cls, **values: Any) -> DeviceConfig:
        """Validate values, raising ConfigError instead of pydantic's ValidationError."""
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            reasons = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in e.errors()
            )
            raise ConfigError(reasons) from e

    def adopt(self, device: DiscoveredDevice) -> DeviceConfig:
        """Return a copy taking ip, id, gateway id, product key and version from a broadcast.

        An unsupported broadcast version is ignored and the configured version kept.
        """
        version = self.version
        if device.version in SUPPORTED_VERSIONS:
            version = device.version
        elif device.version is not None:
            logger.warning(
                "Ignoring unsupported broadcast version %s, keeping %s",
                device.version,
                self.version,
                extra={"device_id": device.id},
            )
        return DeviceConfig.create(
            **self.model_dump(exclude={"ip", "id", "gw_id", "product_key", "version"}),
            ip=device.ip,
            id=device.id,
            gw_id=device.id,
            product_key=device.product_key or self.product_key,
            version=version,
        )
