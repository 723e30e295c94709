import asyncio
import socket

import pytest

from ci_pipeline.core.errors import HostUnreachableError
from ci_pipeline.models.host import HostEndpoint, HostPair, HostRole
from ci_pipeline.services.host_probe import HostProbe, NullHostProbe


def _pair(port_server, port_client):
    return HostPair(
        server=HostEndpoint(role=HostRole.SERVER, hostname="127.0.0.1", address="10.3.1.10", port=port_server),
        client=HostEndpoint(role=HostRole.CLIENT, hostname="127.0.0.1", address="10.3.1.11", port=port_client),
    )


def _closed_port():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def test_both_hosts_reachable():
    async def run_test():
        server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        async with server:
            await HostProbe(timeout_seconds=2).ensure_reachable(_pair(port, port))

    asyncio.run(run_test())


def test_unreachable_client_raises():
    async def run_test():
        server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        closed = _closed_port()
        async with server:
            with pytest.raises(HostUnreachableError) as exc:
                await HostProbe(timeout_seconds=2).ensure_reachable(_pair(port, closed))
        return exc.value, closed

    err, closed = asyncio.run(run_test())
    assert err.role == "client"
    assert err.port == closed


def test_is_reachable_false_on_refused():
    assert asyncio.run(HostProbe(timeout_seconds=2).is_reachable("127.0.0.1", _closed_port())) is False


def test_null_probe_never_raises():
    asyncio.run(NullHostProbe().ensure_reachable(_pair(1, 1)))
