from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from satosa_yubikey.config import YubikeyOTPConfig


class VerificationContext(BaseModel):
    """
    Everything the OTP endpoint needs to verify a YubiKey for a suspended authentication.

    The shared secret is left out when the context is stored in the state, since the state
    is handed to the browser (encrypted) between requests.
    """

    client_identifier: str
    shared_secret: SecretStr = Field(exclude=True)
    candidate_device_ids: frozenset[str]
    assurance_attribute_name: str
    assurance_attribute_value: str
    validation_service_hosts: tuple[str, ...]
    auth_source_id: str
    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_config(
        cls, config: YubikeyOTPConfig, key_ids: list[str], auth_source_id: str
    ) -> "VerificationContext":
        return cls(
            client_identifier=config.api_client_id,
            shared_secret=config.api_key,
            candidate_device_ids=frozenset(key_ids),
            assurance_attribute_name=config.assurance_attribute,
            assurance_attribute_value=config.assurance_value,
            validation_service_hosts=tuple(config.api_hosts),
            auth_source_id=auth_source_id,
        )

    def to_state(self) -> dict[str, Any]:
        # `state` needs to be JSON serialisable
        res = self.model_dump(mode="json")
        res["candidate_device_ids"] = sorted(self.candidate_device_ids)
        return res

    @classmethod
    def from_state(cls, data: Mapping[str, Any], shared_secret: SecretStr) -> "VerificationContext":
        return cls.model_validate({**data, "shared_secret": shared_secret})
