"""
Host Probe
==========
TCP reachability check for the server and client hosts.

Both hosts must accept a connection on the SSH port before stage 1 starts.
Probing is sequential; the result for each host is logged.
"""
import asyncio
import logging

from ci_pipeline.core.errors import HostUnreachableError
from ci_pipeline.models.host import HostPair

logger = logging.getLogger(__name__)


class HostProbe:

    def __init__(self, timeout_seconds: float = 10.0) -> None:
        self.timeout_seconds = timeout_seconds

    async def is_reachable(self, hostname: str, port: int) -> bool:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(hostname, port), timeout=self.timeout_seconds
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.warning("Probe failed | %s:%d | %s", hostname, port, str(e) or type(e).__name__)
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            logger.debug("Probe socket close failed for %s:%d", hostname, port)
        return True

    async def ensure_reachable(self, hosts: HostPair) -> None:
        """Raise HostUnreachableError for the first host that does not answer."""
        for endpoint in hosts.endpoints():
            ok = await self.is_reachable(endpoint.hostname, endpoint.port)
            if not ok:
                raise HostUnreachableError(endpoint.role.value, endpoint.hostname, endpoint.port)
            logger.info("Probe ok | %s=%s:%d", endpoint.role.value, endpoint.hostname, endpoint.port)


class NullHostProbe(HostProbe):
    """Skips the check (HOST_PROBE_ENABLED=false)."""

    async def ensure_reachable(self, hosts: HostPair) -> None:
        logger.info("Host probe disabled, assuming both hosts are reachable")
