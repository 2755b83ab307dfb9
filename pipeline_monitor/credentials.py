
# Credential lookup. The secret store is queried by service name before every
# poll: "GitHub" for workflow feeds, the server's host for CCTray feeds.
# Failing to read a secret is never fatal; the request simply goes out without
# credentials and the server's answer (usually 401) decides what happens.

import logging
import os
import re
from dataclasses import dataclass
from typing import Mapping, Protocol

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class HTTPCredential:
    """User and password for HTTP basic auth against a CCTray server."""
    user: str
    password: str


class CredentialStore(Protocol):
    def get_credential(self, service: str) -> str | None: ...


class StaticCredentialStore:
    """Mapping-backed store, used for tests and one-off runs."""

    def __init__(self, secrets: Mapping[str, str] | None = None) -> None:
        self._secrets = dict(secrets or {})

    def get_credential(self, service: str) -> str | None:
        return self._secrets.get(service)


class EnvironmentCredentialStore:
    """
    Reads secrets from environment variables named PIPELINE_MONITOR_TOKEN_<SERVICE>,
    with the service name upper-cased and every non-alphanumeric run replaced by '_':

        GitHub          → PIPELINE_MONITOR_TOKEN_GITHUB
        ci.example.com  → PIPELINE_MONITOR_TOKEN_CI_EXAMPLE_COM
    """

    PREFIX = "PIPELINE_MONITOR_TOKEN_"

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ if environ is not None else os.environ

    @classmethod
    def variable_name(cls, service: str) -> str:
        return cls.PREFIX + re.sub(r"[^A-Za-z0-9]+", "_", service).strip("_").upper()

    def get_credential(self, service: str) -> str | None:
        return self._environ.get(self.variable_name(service)) or None


def lookup_credential(store: CredentialStore | None, service: str) -> str | None:
    if store is None or not service:
        return None
    try:
        return store.get_credential(service)
    except Exception as exc:
        log.warning("Could not read credential for %s: %s", service, exc)
        return None
