# helix_alm/config.py

import os
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlsplit

from dotenv import load_dotenv

from .exceptions import ConfigurationError

# Load environment variables from .env file
load_dotenv()

DEFAULT_BASE_URL = "https://localhost:8443/helix-alm/api/v0/"


class Config:
    # Helix ALM REST API Configuration
    HELIX_ALM_URL = os.getenv("HELIX_ALM_URL", DEFAULT_BASE_URL)
    HELIX_ALM_USERNAME = os.getenv("HELIX_ALM_USERNAME", "administrator")
    HELIX_ALM_PASSWORD = os.getenv("HELIX_ALM_PASSWORD", "")
    HELIX_ALM_PROJECT = os.getenv("HELIX_ALM_PROJECT", "Traditional Template")

    # Transport Settings
    REQUEST_TIMEOUT = os.getenv("HELIX_ALM_TIMEOUT", "30")
    CA_FILE = os.getenv("HELIX_ALM_CA_FILE")
    CERT_FINGERPRINT = os.getenv("HELIX_ALM_CERT_FINGERPRINT")

    # Logging
    LOG_LEVEL = os.getenv("HELIX_ALM_LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("HELIX_ALM_LOG_FILE")

    @classmethod
    def validate(cls):
        required_vars = ["HELIX_ALM_URL", "HELIX_ALM_USERNAME", "HELIX_ALM_PROJECT"]
        missing_vars = [var for var in required_vars if not getattr(cls, var)]
        if missing_vars:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing_vars)}"
            )


@dataclass(frozen=True)
class TLSPolicy:
    """Certificate trust for the configured API host.

    ``ca_file`` adds a trust anchor (for example the server's self-signed
    certificate) and ``fingerprint`` pins the SHA-256 digest of the host
    certificate. Either applies only to the API host itself; every other
    host is verified against the system trust store.
    """

    ca_file: Optional[str] = None
    fingerprint: Optional[str] = None

    def __post_init__(self):
        if self.fingerprint is not None:
            digest = self.fingerprint.replace(":", "").lower()
            try:
                raw = bytes.fromhex(digest)
            except ValueError:
                raise ConfigurationError(
                    f"Certificate fingerprint is not hex: {self.fingerprint!r}"
                )
            if len(raw) != 32:
                raise ConfigurationError(
                    "Certificate fingerprint must be a SHA-256 digest (32 bytes)"
                )
            object.__setattr__(self, "fingerprint", digest)
        if self.ca_file is not None and not os.path.isfile(self.ca_file):
            raise ConfigurationError(f"CA file not found: {self.ca_file}")

    @property
    def is_default(self):
        return self.ca_file is None and self.fingerprint is None


@dataclass(frozen=True)
class ClientConfig:
    """Settings for a single ``HelixALMAPI`` instance."""

    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    tls: TLSPolicy = field(default_factory=TLSPolicy)
    headers: dict = field(default_factory=dict)

    def __post_init__(self):
        parts = urlsplit(self.base_url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ConfigurationError(f"Invalid Helix ALM URL: {self.base_url!r}")
        if not self.base_url.endswith("/"):
            object.__setattr__(self, "base_url", self.base_url + "/")
        if self.timeout <= 0:
            raise ConfigurationError("Request timeout must be positive")

    @property
    def host(self):
        """The ``(hostname, port)`` pair the TLS policy is bound to."""
        parts = urlsplit(self.base_url)
        port = parts.port or (443 if parts.scheme == "https" else 80)
        return parts.hostname.lower(), port

    @classmethod
    def from_env(cls):
        Config.validate()
        try:
            timeout = float(Config.REQUEST_TIMEOUT)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"HELIX_ALM_TIMEOUT must be a number of seconds, "
                f"got {Config.REQUEST_TIMEOUT!r}"
            )
        return cls(
            base_url=Config.HELIX_ALM_URL,
            timeout=timeout,
            tls=TLSPolicy(
                ca_file=Config.CA_FILE or None,
                fingerprint=Config.CERT_FINGERPRINT or None,
            ),
        )
