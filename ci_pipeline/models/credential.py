"""
Access Credential Model
=======================
Provisioned private key plus the SSH client policy derived from it.

The policy is the "remote session config" consumed by the test driver:
one host pattern mapped to the options below. Password authentication and
strict host-key checking are always off so the driver never blocks on a
prompt.
"""
from typing import Dict

from pydantic import BaseModel, Field


class SessionPolicy(BaseModel):
    host_pattern: str = "*"
    identity_file: str
    user: str
    port: int
    identities_only: bool = True
    password_authentication: bool = False
    strict_host_key_checking: bool = False

    def render(self) -> str:
        """Render as an OpenSSH client config block."""
        lines = [
            f"Host {self.host_pattern}",
            f"\tStrictHostKeyChecking {_yes_no(self.strict_host_key_checking)}",
            f"\tIdentityFile {self.identity_file}",
            f"\tIdentitiesOnly {_yes_no(self.identities_only)}",
            f"\tPasswordAuthentication {_yes_no(self.password_authentication)}",
            f"\tUser {self.user}",
            f"\tPort {self.port}",
        ]
        return "\n".join(lines) + "\n"


class AccessCredential(BaseModel):
    home_dir: str
    key_path: str
    config_path: str
    policy: SessionPolicy
    key_mode: int = Field(default=0o400)
    # original path -> backup path for files moved aside at provisioning
    backups: Dict[str, str] = Field(default_factory=dict)


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"
