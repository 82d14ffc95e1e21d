import logging

from yubico_client import Yubico
from yubico_client.yubico_exceptions import StatusCodeError, YubicoError

from satosa_yubikey.config import api_urls
from satosa_yubikey.context import VerificationContext

logger = logging.getLogger(__name__)


class OTPValidator:
    """
    Ask the YubiCloud (or a compatible) validation service whether an OTP is authentic.

    Signing the requests, verifying the signed responses and failing over between the
    hosts is all done by yubico_client.
    """

    def __init__(self, vctx: VerificationContext, verify_cert: bool = True, ca_certs_bundle_path: str | None = None):
        self.client = Yubico(
            vctx.client_identifier,
            key=vctx.shared_secret.get_secret_value(),
            verify_cert=verify_cert,
            api_urls=api_urls(list(vctx.validation_service_hosts)),
            ca_certs_bundle_path=ca_certs_bundle_path,
        )

    def verify(self, otp: str) -> bool:
        try:
            return self.client.verify(otp) is True
        except StatusCodeError as e:
            # BAD_OTP, REPLAYED_OTP and friends
            logger.info(f"The validation service rejected the OTP: {e.status_code}")
        except YubicoError as e:
            logger.error(f"Failed verifying the OTP with the validation service: {e}")
        except Exception:
            # yubico_client raises a plain Exception when no host gave a valid answer
            logger.exception("Could not reach the validation service")
        return False
