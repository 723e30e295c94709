"""
Command Builder
===============
Maps a stage definition and the host pair to the test driver's argv.

Builder never executes commands; it only returns argument sequences.
Commands are passed to the Driver Invoker for execution.

Driver contract (argument order is fixed):
    <driver> --server <host> --client <host>
             --repository <repo> --branch origin/<branch>
             --libos <selector> [--debug]
             [--test-unit] [--test-system <suite|all>] --delay <n>
             --server-addr <addr> --client-addr <addr>

Deterministic: same inputs → same argv, always.
"""
import shlex
from dataclasses import dataclass
from typing import Tuple

from ci_pipeline.core.constants import REMOTE_NAME
from ci_pipeline.models.host import HostPair
from ci_pipeline.models.stage import StageDefinition


@dataclass(frozen=True)
class DriverCommand:
    """
    Immutable driver invocation.

    Fields
    ------
    argv : tuple[str, ...]
        Full argument vector, program first.
    stage : str
        Stage the command was built for.
    """
    argv: Tuple[str, ...]
    stage: str

    def display(self) -> str:
        return " ".join(shlex.quote(a) for a in self.argv)

    def has_flag(self, flag: str) -> bool:
        return flag in self.argv

    def value_of(self, option: str) -> str:
        """Return the argument following ``option`` ("" if absent)."""
        try:
            idx = self.argv.index(option)
        except ValueError:
            return ""
        return self.argv[idx + 1] if idx + 1 < len(self.argv) else ""


def build_driver_command(
    driver: str,
    stage: StageDefinition,
    hosts: HostPair,
    repository: str,
    branch: str,
    libos: str,
) -> DriverCommand:
    """
    Build the argv for one stage.

    Parameters
    ----------
    driver : str
        Driver program prefix, shell-split (e.g. "python3 tools/demikernel_ci.py").
    stage : StageDefinition
        Supplies the debug flag, test selection and delay.
    hosts : HostPair
        Server/client hostnames and test-network addresses.
    repository : str
        Source repository identifier.
    branch : str
        Bare branch name; passed as ``origin/<branch>``.
    libos : str
        Target library selector.

    Returns
    -------
    DriverCommand
    """
    argv = shlex.split(driver)
    if not argv:
        raise ValueError("Driver command is empty")

    argv += [
        "--server", hosts.server.hostname,
        "--client", hosts.client.hostname,
        "--repository", repository,
        "--branch", f"{REMOTE_NAME}/{branch}",
        "--libos", libos,
    ]
    if stage.debug:
        argv.append("--debug")
    if stage.test_unit:
        argv.append("--test-unit")
    if stage.test_system:
        argv += ["--test-system", stage.test_system]
    argv += [
        "--delay", str(stage.delay),
        "--server-addr", hosts.server.address,
        "--client-addr", hosts.client.address,
    ]
    return DriverCommand(argv=tuple(argv), stage=stage.name.value)
