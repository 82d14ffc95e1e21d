import unittest
from typing import Any
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

from satosa.context import Context
from satosa.internal import AuthenticationInformation, InternalData
from satosa.response import Response
from satosa.state import State

from satosa_yubikey.plugin import YubikeyOTP

AUTH_SOURCE = "https://idp.example.com/idp.xml"
BASE_URL = "https://proxy.example.com"
PASSWORD = "dteffujehknhfjbrjnlnldnhcujvddbi"


class YubikeyTestCase(unittest.TestCase):
    """Base class setting up the micro service with a mocked validation service."""

    def setUp(self) -> None:
        self.config: dict[str, Any] = {
            "api_client_id": "12345",
            "api_key": "dGhpcyBpcyBub3QgYSByZWFsIGtleQ==",
        }
        self.resumed: list[InternalData] = []
        self.plugin = self.make_plugin()

        _patcher = patch("satosa_yubikey.validation.Yubico")
        self.yubico_class = _patcher.start()
        self.addCleanup(_patcher.stop)
        self.yubico: MagicMock = self.yubico_class.return_value
        self.yubico.verify.return_value = True

        self.context = self.make_context()

    def make_plugin(self, **config: Any) -> YubikeyOTP:
        plugin = YubikeyOTP({**self.config, **config}, {}, name="yubikey", base_url=BASE_URL)
        plugin.next = self._next
        return plugin

    def _next(self, context: Context, data: InternalData) -> Response:
        self.resumed.append(data)
        return Response("resumed")

    @staticmethod
    def make_context(request: dict[str, str] | None = None, state: State | None = None) -> Context:
        context = Context()
        context.state = state if state is not None else State()
        context.request = request or {}
        return context

    @staticmethod
    def make_data(attributes: dict[str, list[str]] | None = None, issuer: str = AUTH_SOURCE) -> InternalData:
        return InternalData(
            auth_info=AuthenticationInformation(issuer=issuer),
            requester="https://sp.example.com/sp.xml",
            attributes=attributes if attributes is not None else {},
        )

    @staticmethod
    def state_id(response: Response) -> str:
        return parse_qs(urlparse(response.message).query)["StateId"][0]

    def suspend(self, key_ids: list[str]) -> str:
        """Run the micro service for a user with YubiKeys and return the suspension handle."""
        res = self.plugin.process(self.context, self.make_data({"yubikey": key_ids}))
        assert isinstance(res, Response)
        return self.state_id(res)

    def submit(self, handle: str, otp: str | None = None) -> Response:
        request = {"StateId": handle}
        if otp is not None:
            request["otp"] = otp
        self.context.request = request
        return self.plugin._handle_otp(self.context)
