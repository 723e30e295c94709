"""
Host Model
==========
Binding of a logical test role (server / client) to a physical endpoint.

Fields:
    role            — HostRole.SERVER or HostRole.CLIENT
    hostname        — SSH-reachable name, resolved from the secret store
    address         — test-network address, static per deployment
    user / port     — SSH connection parameters
    identity_file   — path to the provisioned private key (empty until provisioned)
"""
from enum import Enum

from pydantic import BaseModel, Field


class HostRole(str, Enum):
    SERVER = "server"
    CLIENT = "client"


class HostEndpoint(BaseModel):
    role: HostRole
    hostname: str = Field(min_length=1)
    address: str = Field(min_length=1)
    user: str = ""
    port: int = 22
    identity_file: str = ""


class HostPair(BaseModel):
    """Exactly one endpoint per role for a run."""
    server: HostEndpoint
    client: HostEndpoint

    def endpoints(self) -> list[HostEndpoint]:
        return [self.server, self.client]
