import json
import unittest

from pydantic import SecretStr

from satosa_yubikey.config import load_config
from satosa_yubikey.context import VerificationContext


class VerificationContextTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = load_config(
            {"api_client_id": "12345", "api_key": "secret", "assurance_attribute": "edupersonassurance"}
        )
        self.vctx = VerificationContext.from_config(
            self.config, key_ids=["bb", "aa"], auth_source_id="https://idp.example.com/idp.xml"
        )

    def test_from_config(self) -> None:
        assert self.vctx.client_identifier == "12345"
        assert self.vctx.candidate_device_ids == frozenset({"aa", "bb"})
        assert self.vctx.assurance_attribute_name == "edupersonassurance"
        assert self.vctx.assurance_attribute_value == "OTP"
        assert len(self.vctx.validation_service_hosts) == 5

    def test_state_round_trip(self) -> None:
        # the state is serialised as JSON by SATOSA
        data = json.loads(json.dumps(self.vctx.to_state()))
        loaded = VerificationContext.from_state(data, shared_secret=self.config.api_key)
        assert loaded == self.vctx
        assert loaded.candidate_device_ids == self.vctx.candidate_device_ids
        assert loaded.assurance_attribute_name == self.vctx.assurance_attribute_name
        assert loaded.assurance_attribute_value == self.vctx.assurance_attribute_value
        assert loaded.auth_source_id == self.vctx.auth_source_id

    def test_secret_not_in_state(self) -> None:
        data = self.vctx.to_state()
        assert "shared_secret" not in data
        assert "secret" not in json.dumps(data)

    def test_immutable(self) -> None:
        with self.assertRaises(Exception):
            self.vctx.auth_source_id = "https://other.example.com"  # type: ignore[misc]

    def test_other_secret(self) -> None:
        loaded = VerificationContext.from_state(self.vctx.to_state(), shared_secret=SecretStr("other"))
        assert loaded.shared_secret.get_secret_value() == "other"
