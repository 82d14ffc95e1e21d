"""
Counters for the outcome of YubiKey OTP step-ups.

Every counter is named <app_name>.otp.<event>, e.g. yubikey.otp.success. Without a
configured statsd server the events are only logged.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum

import statsd

from satosa_yubikey.config import StatsConfigMixin

logger = logging.getLogger(__name__)


class OTPEvent(str, Enum):
    # a user was sent to the OTP prompt
    REQUESTED = "requested"
    # the key was already verified earlier in the session
    REUSED = "reused"
    SUCCESS = "success"
    # a valid OTP from a key that does not belong to the user
    INVALID_KEY = "invalid_key"
    # the validation service did not accept the OTP
    REJECTED = "rejected"
    MALFORMED = "malformed"


class OTPStats(ABC):
    def __init__(self, app_name: str) -> None:
        self.app_name = app_name

    def metric(self, event: OTPEvent) -> str:
        return f"{self.app_name}.otp.{event.value}"

    @abstractmethod
    def record(self, event: OTPEvent) -> None:
        pass


class LoggingStats(OTPStats):
    """
    Used when no statsd server is configured.
    """

    def record(self, event: OTPEvent) -> None:
        logger.debug(f"OTP event: {self.metric(event)}")


class StatsdStats(OTPStats):
    def __init__(self, app_name: str, host: str, port: int) -> None:
        super().__init__(app_name)
        self.client = statsd.StatsClient(host, port)

    def record(self, event: OTPEvent) -> None:
        # needs a storage aggregation that sums .count metrics, the default is to average
        self.client.incr(f"{self.metric(event)}.count")


def init_otp_stats(config: StatsConfigMixin) -> OTPStats:
    if not config.stats_host:
        return LoggingStats(config.app_name)
    logger.info(f"Sending OTP statistics to {config.stats_host}:{config.stats_port}")
    return StatsdStats(config.app_name, host=config.stats_host, port=config.stats_port)
