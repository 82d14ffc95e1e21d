from satosa.exception import SATOSAAuthenticationError, SATOSAError


class YubikeyError(SATOSAError):
    """Generic error for this plugin."""


class MissingCredentialError(SATOSAAuthenticationError):
    """The user has no YubiKey, and one is required."""


class InvalidStateError(YubikeyError):
    """The suspended authentication could not be found, or is in the wrong stage."""


class MalformedOtpError(YubikeyError):
    """The submitted value can't possibly be a YubiKey OTP."""


class DeviceNotAuthorizedError(YubikeyError):
    """The YubiKey used does not belong to the user. Never shown to the user as-is."""
