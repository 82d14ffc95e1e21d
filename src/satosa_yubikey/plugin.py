"""A micro service that uses a YubiKey OTP as a second factor, asking for one when the user has a YubiKey."""

import logging
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any, TypeAlias
from urllib.parse import urlencode

import satosa.context
import satosa.internal
import satosa.response
from satosa.internal import InternalData
from satosa.micro_services.base import ResponseMicroService
from satosa.response import Response, SeeOther
from satosa.state import State

from satosa_yubikey.config import YubikeyOTPConfig, load_config
from satosa_yubikey.context import VerificationContext
from satosa_yubikey.exceptions import DeviceNotAuthorizedError, MalformedOtpError, MissingCredentialError
from satosa_yubikey.helpers import Jinja2Env
from satosa_yubikey.otp import normalize_otp, split_otp
from satosa_yubikey.stats import OTPEvent, OTPStats, init_otp_stats
from satosa_yubikey.stores import (
    SessionStore,
    StateSessionStore,
    StateSuspensionStore,
    SuspensionStore,
    logout_handler,
)
from satosa_yubikey.validation import OTPValidator

logger = logging.getLogger(__name__)

ProcessReturnType: TypeAlias = satosa.internal.InternalData | satosa.response.Response
CallbackReturnType: TypeAlias = satosa.response.Response
CallbackCallSignature = Callable[[satosa.context.Context], CallbackReturnType]

STAGE = "yubikey:otp:init"
STATE_KEY_OTP = "yubikey:otp"
STATE_KEY_DATA = "internal_data"
# namespace of the verified YubiKey per auth source, in the session
AUTH_NAMESPACE = "yubikey:auth"
LOGOUT_HANDLER = "yubikey:forget"

OTP_TEMPLATE = "otp.jinja2"
LOGOUT_TEMPLATE = "logout.jinja2"

INVALID_YUBIKEY_MESSAGE = "The YubiKey used is invalid. Make sure to use the YubiKey associated with your account."


class Decision(Enum):
    SKIP = "skip"
    SKIP_CACHED = "skip-cached"
    SUSPEND = "suspend"


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def decide(
    attributes: Mapping[str, Any],
    key_id_attribute: str,
    abort_if_missing: bool,
    verified_key_id: str | None,
    state: State | None = None,
) -> Decision:
    """
    Decide whether the user has to be asked for a YubiKey OTP.

    :param attributes: The attributes released by the upstream IdP
    :param key_id_attribute: Name of the attribute holding the users YubiKey ids
    :param abort_if_missing: Abort the authentication if the user has no YubiKey id
    :param verified_key_id: YubiKey id already verified for this auth source in the session
    :param state: The SATOSA state, for error reporting

    :raises MissingCredentialError: if a YubiKey is required but the user has none
    """
    key_ids = _as_list(attributes.get(key_id_attribute))
    if not key_ids:
        if abort_if_missing:
            raise MissingCredentialError(state, "Missing key ID")
        # missing attribute, but not required
        return Decision.SKIP
    if verified_key_id is not None and verified_key_id in key_ids:
        return Decision.SKIP_CACHED
    return Decision.SUSPEND


def check_device(device_id: str, vctx: VerificationContext) -> None:
    if device_id not in vctx.candidate_device_ids:
        raise DeviceNotAuthorizedError(f"The YubiKey {device_id} is not valid for this user")


@logout_handler(LOGOUT_HANDLER)
def forget_verified_key(store: SessionStore, session: State, auth_source_id: str) -> None:
    """Remove the verified key from the session, so that the user is asked for it again on the next login."""
    key_id = store.get(session, AUTH_NAMESPACE, auth_source_id)
    logger.info(f"Removing valid YubiKey authentication with key {key_id!r} for {auth_source_id}")
    store.delete(session, AUTH_NAMESPACE, auth_source_id)


class YubikeyOTP(ResponseMicroService):
    """
    Use a YubiKey as an OTP second factor.

    Users with one or more YubiKey ids in the `key_id_attribute` are redirected to a page
    asking for an OTP from one of them. The OTP is verified with the YubiCloud validation
    service, and on success `assurance_value` is added to `assurance_attribute`.

    Example configuration:

      module: satosa_yubikey.YubikeyOTP
      name: yubikey
      config:
        api_client_id: '12345'
        api_key: !ENV YUBIKEY_API_KEY
        abort_if_missing: false
        key_id_attribute: yubikey
        assurance_attribute: edupersonassurance
        assurance_value: OTP
        api_hosts:
          - api.yubico.com
          - api2.yubico.com
        stats_host: localhost
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        internal_attributes: dict[str, Any],
        *args: Any,
        session_store: SessionStore | None = None,
        suspension_store: SuspensionStore | None = None,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)

        self.config: YubikeyOTPConfig = load_config(config)
        self.session_store = session_store or StateSessionStore()
        self.suspension_store = suspension_store or StateSuspensionStore(namespace=self.name)
        self.jinja2 = Jinja2Env(self.config.template_dir)
        self.stats: OTPStats = init_otp_stats(self.config)

        if not self.config.just_once:
            logger.warning("Option just_once is not implemented, users will only be asked once per session")

        logger.info(f"YubiKey OTP authentication is active, using hosts {self.config.api_hosts}")

    def process(self, context: satosa.context.Context, data: satosa.internal.InternalData) -> ProcessReturnType:
        auth_source_id = _get_auth_source_id(data)
        verified_key_id = self.session_store.get(context.state, AUTH_NAMESPACE, auth_source_id)
        decision = decide(
            attributes=data.attributes,
            key_id_attribute=self.config.key_id_attribute,
            abort_if_missing=self.config.abort_if_missing,
            verified_key_id=verified_key_id,
            state=context.state,
        )
        logger.debug(f"YubiKey decision for auth source {auth_source_id}: {decision}")

        if decision is Decision.SKIP:
            # nothing we can do here
            return super().process(context, data)

        if decision is Decision.SKIP_CACHED:
            # we were already authenticated using a valid yubikey
            logger.info(f"Reusing previous YubiKey authentication with key {verified_key_id!r}")
            self.stats.record(OTPEvent.REUSED)
            return super().process(context, data)

        vctx = VerificationContext.from_config(
            self.config,
            key_ids=_as_list(data.attributes[self.config.key_id_attribute]),
            auth_source_id=auth_source_id,
        )
        handle = self.suspension_store.save(
            context.state,
            {STATE_KEY_DATA: data.to_dict(), STATE_KEY_OTP: vctx.to_state()},
            STAGE,
        )
        self.stats.record(OTPEvent.REQUESTED)
        logger.debug("Initiating YubiKey authentication")
        return SeeOther(f"{self.base_url}/{self.name}/otp?{urlencode({'StateId': handle})}")

    def get_validator(self, vctx: VerificationContext) -> OTPValidator:
        return OTPValidator(
            vctx, verify_cert=self.config.verify_cert, ca_certs_bundle_path=self.config.ca_certs_bundle_path
        )

    def authenticate(
        self,
        context: satosa.context.Context,
        data: satosa.internal.InternalData,
        vctx: VerificationContext,
        otp: str,
    ) -> bool:
        """
        Perform OTP authentication of a suspended authentication.

        :return: True if the OTP is valid and the key belongs to the user, False otherwise

        :raises MalformedOtpError: if the OTP has an incorrect length
        """
        otp = normalize_otp(otp)

        # obtain the identity of the yubikey
        device_id, _password = split_otp(otp)
        logger.debug(f"Verifying YubiKey ID {device_id!r}")

        # the validation service needs the public id too, so the whole OTP is sent
        service_confirmed = self.get_validator(vctx).verify(otp)

        # verify the identity corresponds to this user
        try:
            check_device(device_id, vctx)
        except DeviceNotAuthorizedError as e:
            logger.warning(f"{e}")
            self.stats.record(OTPEvent.INVALID_KEY)
            return False

        if not service_confirmed:
            logger.warning(f"Couldn't successfully authenticate YubiKey {device_id!r}")
            self.stats.record(OTPEvent.REJECTED)
            return False

        _values = _as_list(data.attributes.get(vctx.assurance_attribute_name))
        if vctx.assurance_attribute_value not in _values:
            _values.append(vctx.assurance_attribute_value)
        data.attributes[vctx.assurance_attribute_name] = _values

        # keep authentication data in the session
        self.session_store.set(context.state, AUTH_NAMESPACE, vctx.auth_source_id, device_id)
        self.session_store.register_logout_hook(context.state, vctx.auth_source_id, LOGOUT_HANDLER)
        logger.info(f"Successful authentication with YubiKey {device_id!r}")
        self.stats.record(OTPEvent.SUCCESS)
        return True

    def _handle_otp(self, context: satosa.context.Context) -> CallbackReturnType:
        """
        This is where the user is asked for, and submits, the OTP.
        """
        request = context.request or {}
        handle = request.get("StateId")
        saved = self.suspension_store.load(context.state, handle, STAGE)
        data = InternalData.from_dict(saved[STATE_KEY_DATA])
        vctx = VerificationContext.from_state(saved[STATE_KEY_OTP], shared_secret=self.config.api_key)

        error = None
        otp = request.get("otp")
        if otp is not None:
            # we were given an OTP
            try:
                if self.authenticate(context, data, vctx, otp):
                    self.suspension_store.discard(context.state, handle)
                    res = super().process(context, data)
                    if not isinstance(res, Response):
                        # The last micro service in the chain always returns a Response
                        raise RuntimeError("Unexpected response type")
                    return res
                error = INVALID_YUBIKEY_MESSAGE
            except MalformedOtpError as e:
                logger.info("Received a malformed OTP")
                self.stats.record(OTPEvent.MALFORMED)
                error = str(e)

        return self._render_prompt(handle, error)

    def _render_prompt(self, handle: str, error: str | None) -> Response:
        page = self.jinja2.render(OTP_TEMPLATE, params={"StateId": handle}, error=error, autofocus="otp")
        return Response(page, content="text/html")

    def _handle_logout(self, context: satosa.context.Context) -> CallbackReturnType:
        auth_source_id = (context.request or {}).get("auth_source")
        logged_out = self.session_store.run_logout_hooks(context.state, auth_source_id)
        logger.info(f"Logged out from auth sources: {logged_out}")
        return Response(self.jinja2.render(LOGOUT_TEMPLATE, auth_sources=logged_out), content="text/html")

    def register_endpoints(self) -> list[tuple[str, CallbackCallSignature]]:
        url_map: list[tuple[str, CallbackCallSignature]] = [
            (f"^{self.name}/otp$", self._handle_otp),
            (f"^{self.name}/logout$", self._handle_logout),
        ]
        logger.debug(f"Registering endpoints: {url_map}")
        return url_map


def _get_auth_source_id(data: satosa.internal.InternalData) -> str:
    issuer = data.auth_info.issuer if data.auth_info else None
    return issuer or ""
