"""
Configuration of the YubiKey OTP micro service.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator
from satosa.exception import SATOSAConfigurationError

DEFAULT_API_HOSTS = [
    "api.yubico.com",
    "api2.yubico.com",
    "api3.yubico.com",
    "api4.yubico.com",
    "api5.yubico.com",
]

VERIFY_PATH = "/wsapi/2.0/verify"


class StatsConfigMixin(BaseModel):
    app_name: str = "yubikey"
    stats_host: str | None = None
    stats_port: int = 8125


class YubikeyOTPConfig(StatsConfigMixin):
    api_client_id: str
    api_key: SecretStr
    # Whether to abort authentication if no yubikey is known for the user or not
    abort_if_missing: bool = False
    # The name of the attribute containing the yubikey ID(s)
    key_id_attribute: str = "yubikey"
    # The attribute, and the value appended to it, that expresses successful authentication with the yubikey
    assurance_attribute: str = "eduPersonAssurance"
    assurance_value: str = "OTP"
    # Hosts of the validation service, in failover order
    api_hosts: list[str] = Field(default_factory=lambda: list(DEFAULT_API_HOSTS))
    # Remember a previous authentication or keep asking. Not enforced.
    just_once: bool = True
    template_dir: str | None = None
    verify_cert: bool = True
    ca_certs_bundle_path: str | None = None
    model_config = ConfigDict(frozen=True)

    @field_validator("api_hosts", mode="before")
    @classmethod
    def _arrayize_hosts(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("api_hosts")
    @classmethod
    def _require_hosts(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("at least one API host is required")
        return v


def api_urls(hosts: list[str]) -> list[str]:
    """Turn the configured host names into validation service URLs."""
    res = []
    for host in hosts:
        if "://" in host:
            res.append(host)
        else:
            res.append(f"https://{host.strip('/')}{VERIFY_PATH}")
    return res


def load_config(config: Mapping[str, Any]) -> YubikeyOTPConfig:
    try:
        return YubikeyOTPConfig.model_validate(config)
    except ValidationError as e:
        raise SATOSAConfigurationError(f"The configuration for this plugin is not valid: {e}")
