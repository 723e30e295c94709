"""
Credential Provisioner
======================
Materialises the SSH private key and client config the test driver uses to
reach both hosts without any interactive prompt.

Layout (in the driver account's home, see default_ssh_home()):
    <home>/.ssh/           mode 0700
    <home>/.ssh/id_rsa     mode 0400
    <home>/.ssh/config     mode 0600

OpenSSH resolves "~/.ssh" from the passwd entry, not from $HOME, so the
files must live in the real home of the account the driver runs as.
Files already there are moved aside to "<name>.ci-pipeline-backup" and
put back by revoke().

SECURITY TRADE-OFF:
    StrictHostKeyChecking is disabled and only key auth is allowed. This keeps
    unattended runs from hanging on a host-key or password prompt, at the
    price of not verifying host identity. The channel is only as trustworthy
    as the network path to the hosts and the secret store.
"""
import os
import pwd
import logging
from typing import Dict

from ci_pipeline.core.errors import CredentialProvisioningError, MissingSecretError
from ci_pipeline.core.constants import SECRET_SSH_KEY, SECRET_SSH_PORT, SECRET_SSH_USERNAME
from ci_pipeline.models.credential import AccessCredential, SessionPolicy

logger = logging.getLogger(__name__)

_SSH_DIR_MODE = 0o700
_KEY_MODE = 0o400
_CONFIG_MODE = 0o600
_KEY_FILENAME = "id_rsa"
_CONFIG_FILENAME = "config"
BACKUP_SUFFIX = ".ci-pipeline-backup"


def default_ssh_home() -> str:
    """Home directory of the current account, as OpenSSH sees it."""
    return pwd.getpwuid(os.getuid()).pw_dir


class CredentialProvisioner:
    """Writes and removes AccessCredentials."""

    def __init__(self, host_pattern: str = "*") -> None:
        self.host_pattern = host_pattern

    def provision(self, home_dir: str, private_key: str, username: str, port: int) -> AccessCredential:
        """
        Write the key and SSH config under ``home_dir``/.ssh.

        Raises
        ------
        MissingSecretError
            Key or username is empty, or port is missing.
        CredentialProvisioningError
            The files could not be written.
        """
        if not private_key or not private_key.strip():
            raise MissingSecretError(SECRET_SSH_KEY)
        if not username or not username.strip():
            raise MissingSecretError(SECRET_SSH_USERNAME)
        if not port:
            raise MissingSecretError(SECRET_SSH_PORT)

        ssh_dir = os.path.join(os.path.abspath(home_dir), ".ssh")
        key_path = os.path.join(ssh_dir, _KEY_FILENAME)
        config_path = os.path.join(ssh_dir, _CONFIG_FILENAME)

        policy = SessionPolicy(
            host_pattern=self.host_pattern,
            identity_file=key_path,
            user=username.strip(),
            port=port,
        )

        backups: Dict[str, str] = {}
        try:
            os.makedirs(ssh_dir, exist_ok=True)
            os.chmod(ssh_dir, _SSH_DIR_MODE)

            for path in (key_path, config_path):
                backup = _set_aside(path)
                if backup:
                    backups[path] = backup

            key_text = private_key if private_key.endswith("\n") else private_key + "\n"
            _write_with_mode(key_path, key_text, _KEY_MODE)
            _write_with_mode(config_path, policy.render(), _CONFIG_MODE)
        except OSError as e:
            _discard((key_path, config_path))
            _restore(backups)
            raise CredentialProvisioningError(f"Failed to write SSH credentials in {ssh_dir}: {e}") from e

        logger.info("SSH credentials provisioned | dir=%s | user=%s | port=%d | backed_up=%d",
                    ssh_dir, policy.user, port, len(backups))
        return AccessCredential(
            home_dir=os.path.abspath(home_dir),
            key_path=key_path,
            config_path=config_path,
            policy=policy,
            key_mode=_KEY_MODE,
            backups=backups,
        )

    def revoke(self, credential: AccessCredential) -> None:
        """Delete the key and config, then restore whatever they displaced."""
        _discard((credential.key_path, credential.config_path))
        _restore(credential.backups)
        logger.info("SSH credentials revoked | dir=%s", os.path.dirname(credential.key_path))


def _set_aside(path: str) -> str:
    """
    Move an existing file out of the way. Returns the backup path, or ""
    when there was nothing to keep.

    A backup left by an interrupted earlier run wins: the file now in place
    is that run's credential, so it is discarded instead.
    """
    if not os.path.lexists(path):
        return ""
    backup = path + BACKUP_SUFFIX
    if os.path.lexists(backup):
        _remove_if_exists(path)
    else:
        os.replace(path, backup)
    return backup


def _discard(paths) -> None:
    for path in paths:
        try:
            _remove_if_exists(path)
        except OSError:
            logger.warning("Failed to remove %s", path, exc_info=True)


def _restore(backups: Dict[str, str]) -> None:
    for original, backup in backups.items():
        try:
            if os.path.lexists(backup):
                _remove_if_exists(original)
                os.replace(backup, original)
        except OSError:
            logger.error("Failed to restore %s from %s", original, backup, exc_info=True)


def _remove_if_exists(path: str) -> None:
    if os.path.lexists(path):
        os.chmod(path, 0o600)
        os.remove(path)


def _write_with_mode(path: str, content: str, mode: int) -> None:
    # Create with restricted mode so the secret is never world-readable
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)
    os.chmod(path, mode)
