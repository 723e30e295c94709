"""
Secrets Provider
================
Boundary between the pipeline and the external secret store.

The sequencer never reads os.environ for secrets directly. It asks a
SecretsProvider, so tests can inject StaticSecretsProvider and a deployment
can plug in whatever store it uses.

load_pipeline_secrets() validates everything up front: a missing or
malformed secret is a PreconditionError and no stage may start.
"""
import os
import logging
from typing import Mapping, Optional, Protocol

from pydantic import BaseModel

from ci_pipeline.core.constants import (
    SECRET_CLIENT_HOSTNAME,
    SECRET_SERVER_HOSTNAME,
    SECRET_SSH_KEY,
    SECRET_SSH_PORT,
    SECRET_SSH_USERNAME,
)
from ci_pipeline.core.errors import InvalidSecretError, MissingSecretError

logger = logging.getLogger(__name__)


class SecretsProvider(Protocol):
    def get(self, name: str) -> Optional[str]:
        ...


class EnvSecretsProvider:
    """Reads secrets from environment variables (CI runners inject them this way)."""

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix

    def get(self, name: str) -> Optional[str]:
        return os.getenv(f"{self.prefix}{name}")


class StaticSecretsProvider:
    """In-memory secrets. Used by tests and local dry runs."""

    def __init__(self, values: Mapping[str, str]) -> None:
        self._values = dict(values)

    def get(self, name: str) -> Optional[str]:
        return self._values.get(name)


class PipelineSecrets(BaseModel):
    server_hostname: str
    client_hostname: str
    ssh_private_key: str
    ssh_username: str
    ssh_port: int

    def __repr__(self) -> str:
        # Never leak the key into logs or tracebacks
        return (
            f"PipelineSecrets(server_hostname={self.server_hostname!r}, "
            f"client_hostname={self.client_hostname!r}, ssh_username={self.ssh_username!r}, "
            f"ssh_port={self.ssh_port}, ssh_private_key=<redacted>)"
        )

    __str__ = __repr__


def _require(provider: SecretsProvider, name: str) -> str:
    value = provider.get(name)
    if value is None or not value.strip():
        raise MissingSecretError(name)
    return value


def load_pipeline_secrets(provider: SecretsProvider) -> PipelineSecrets:
    """
    Fetch and validate every secret the run needs.

    Raises
    ------
    MissingSecretError
        A secret is absent or blank.
    InvalidSecretError
        The SSH port is not an integer in 1..65535.
    """
    server = _require(provider, SECRET_SERVER_HOSTNAME).strip()
    client = _require(provider, SECRET_CLIENT_HOSTNAME).strip()
    key = _require(provider, SECRET_SSH_KEY)
    user = _require(provider, SECRET_SSH_USERNAME).strip()
    raw_port = _require(provider, SECRET_SSH_PORT).strip()

    try:
        port = int(raw_port)
    except ValueError:
        raise InvalidSecretError(SECRET_SSH_PORT, "not an integer")
    if not 1 <= port <= 65535:
        raise InvalidSecretError(SECRET_SSH_PORT, f"{port} outside 1..65535")

    logger.info("Secrets loaded | server=%s | client=%s | user=%s | port=%d", server, client, user, port)
    return PipelineSecrets(
        server_hostname=server,
        client_hostname=client,
        ssh_private_key=key,
        ssh_username=user,
        ssh_port=port,
    )
