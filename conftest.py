"""Pytest configuration for the entire test suite."""

import logging


def pytest_configure(config):
    """Suppress noisy debug logging from the HTTP client used by yubico_client."""
    logging.getLogger("urllib3").setLevel(logging.WARNING)
