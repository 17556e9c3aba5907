"""Configuration for discovery and dispatch

Supports configuration via:
1. Builder methods (highest priority)
2. Environment variables (ADP_CU_URL, ADP_MU_URL, ADP_DISCOVERY_TIMEOUT,
   ADP_DISPATCH_TIMEOUT, ADP_MIN_CONFIDENCE, ADP_VERBOSE_LOGGING)
3. Default values
"""

import logging
import os
from typing import Optional


DEFAULT_CU_URL = "https://cu.ao-testnet.xyz"
DEFAULT_MU_URL = "https://mu.ao-testnet.xyz"
DEFAULT_DISCOVERY_TIMEOUT = 10.0
DEFAULT_DISPATCH_TIMEOUT = 30.0
DEFAULT_MIN_CONFIDENCE = 0.3


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        logging.getLogger(__name__).warning("Ignoring non-numeric %s=%r", name, value)
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class AdpConfig:
    """Configuration for the discovery client, matcher and dispatcher"""

    def __init__(
        self,
        cu_url: Optional[str] = None,
        mu_url: Optional[str] = None,
        discovery_timeout: Optional[float] = None,
        dispatch_timeout: Optional[float] = None,
        min_confidence: Optional[float] = None,
        verbose_logging: Optional[bool] = None,
    ):
        """Create configuration, filling unset values from the environment

        Args:
            cu_url: Compute unit base URL (reads and results)
            mu_url: Messenger unit base URL (writes)
            discovery_timeout: Seconds allowed for one self-description query
            dispatch_timeout: Seconds allowed for the final read/write call
            min_confidence: Acceptance floor for handler matches
            verbose_logging: Log every dispatch pipeline step at DEBUG
        """
        self.cu_url = cu_url if cu_url is not None else os.getenv("ADP_CU_URL", DEFAULT_CU_URL)
        self.mu_url = mu_url if mu_url is not None else os.getenv("ADP_MU_URL", DEFAULT_MU_URL)
        self.discovery_timeout = (
            discovery_timeout if discovery_timeout is not None
            else _env_float("ADP_DISCOVERY_TIMEOUT", DEFAULT_DISCOVERY_TIMEOUT)
        )
        self.dispatch_timeout = (
            dispatch_timeout if dispatch_timeout is not None
            else _env_float("ADP_DISPATCH_TIMEOUT", DEFAULT_DISPATCH_TIMEOUT)
        )
        self.min_confidence = (
            min_confidence if min_confidence is not None
            else _env_float("ADP_MIN_CONFIDENCE", DEFAULT_MIN_CONFIDENCE)
        )
        self.verbose_logging = (
            verbose_logging if verbose_logging is not None
            else _env_bool("ADP_VERBOSE_LOGGING", False)
        )

    def with_cu_url(self, url: str) -> "AdpConfig":
        self.cu_url = url.rstrip("/")
        return self

    def with_mu_url(self, url: str) -> "AdpConfig":
        self.mu_url = url.rstrip("/")
        return self

    def with_discovery_timeout(self, seconds: float) -> "AdpConfig":
        self.discovery_timeout = seconds
        return self

    def with_dispatch_timeout(self, seconds: float) -> "AdpConfig":
        self.dispatch_timeout = seconds
        return self

    def with_min_confidence(self, confidence: float) -> "AdpConfig":
        """Set the acceptance floor for handler matches (0.0 - 1.0)"""
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"min_confidence must be within [0, 1], got {confidence}")
        self.min_confidence = confidence
        return self

    def with_verbose_logging(self, enabled: bool = True) -> "AdpConfig":
        self.verbose_logging = enabled
        return self


def set_verbose_logging(enabled: bool) -> None:
    """Enable or disable DEBUG logging for the whole adp package"""
    logging.getLogger("adp").setLevel(logging.DEBUG if enabled else logging.NOTSET)
