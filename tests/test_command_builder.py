import pytest

from ci_pipeline.executor.command_builder import build_driver_command
from ci_pipeline.models.host import HostEndpoint, HostPair, HostRole
from ci_pipeline.models.stage import StageDefinition, StageName, default_stages


@pytest.fixture
def hosts():
    return HostPair(
        server=HostEndpoint(role=HostRole.SERVER, hostname="srv", address="10.3.1.10", user="u", port=22),
        client=HostEndpoint(role=HostRole.CLIENT, hostname="cli", address="10.3.1.11", user="u", port=22),
    )


def _build(stage, hosts, driver="python3 tools/demikernel_ci.py"):
    return build_driver_command(
        driver=driver,
        stage=stage,
        hosts=hosts,
        repository="demikernel/demikernel",
        branch="feature-xyz",
        libos="catnap",
    )


def test_debug_argv(hosts):
    debug, _ = default_stages(2)
    cmd = _build(debug, hosts)

    assert cmd.stage == "debug"
    assert list(cmd.argv) == [
        "python3", "tools/demikernel_ci.py",
        "--server", "srv",
        "--client", "cli",
        "--repository", "demikernel/demikernel",
        "--branch", "origin/feature-xyz",
        "--libos", "catnap",
        "--debug",
        "--test-unit",
        "--test-system", "all",
        "--delay", "2",
        "--server-addr", "10.3.1.10",
        "--client-addr", "10.3.1.11",
    ]


def test_release_differs_only_by_debug_flag(hosts):
    debug, release = default_stages(2)
    debug_cmd = _build(debug, hosts)
    release_cmd = _build(release, hosts)

    assert not release_cmd.has_flag("--debug")
    assert [a for a in debug_cmd.argv if a != "--debug"] == list(release_cmd.argv)


def test_optional_test_selection(hosts):
    stage = StageDefinition(name=StageName.RELEASE, depends_on=StageName.DEBUG,
                            test_unit=False, test_system=None, delay=5)
    cmd = _build(stage, hosts)

    assert not cmd.has_flag("--test-unit")
    assert not cmd.has_flag("--test-system")
    assert cmd.value_of("--delay") == "5"


def test_single_suite(hosts):
    stage = StageDefinition(name=StageName.DEBUG, debug=True, test_system="tcp_echo")
    assert _build(stage, hosts).value_of("--test-system") == "tcp_echo"


def test_driver_prefix_is_shell_split(hosts):
    debug, _ = default_stages()
    cmd = _build(debug, hosts, driver="'/opt/ci tools/driver' --verbose")
    assert cmd.argv[:2] == ("/opt/ci tools/driver", "--verbose")
    assert "'/opt/ci tools/driver'" in cmd.display()


def test_empty_driver_rejected(hosts):
    debug, _ = default_stages()
    with pytest.raises(ValueError):
        _build(debug, hosts, driver="   ")


def test_value_of_absent_option(hosts):
    debug, _ = default_stages()
    assert _build(debug, hosts).value_of("--nope") == ""
