"""
Driver Invoker
==============
Runs the external test driver for one stage and reports its exit status.

BOUNDARY RULES (CRITICAL):
    - Invoker ONLY observes execution.
    - Invoker NEVER retries: retry policy belongs to the driver.
    - Invoker NEVER collects artifacts: that is the Artifact Collector's job.
    - Invoker NEVER decides whether the next stage runs: that is the Sequencer's job.

PROCESS STRATEGY:
    - One driver process per stage, blocking the sequencer until it exits.
    - stdout/stderr are streamed line by line to the log AND tee'd into
      <stage>-driver.stdout.txt / <stage>-driver.stderr.txt in the working
      tree, so the collector always finds the driver's own console output.
    - Stage timeout → SIGTERM, then SIGKILL after a grace period.
    - Task cancellation → same termination, then CancelledError propagates.

RESULT:
    exit 0 → stage succeeded, anything else (including a timeout or a
    launch failure, reported as exit_code -1) → stage failed.
"""
import os
import time
import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ci_pipeline.core.config import STAGE_TIMEOUT_SECONDS, TERMINATE_GRACE_SECONDS
from ci_pipeline.executor.command_builder import DriverCommand

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Invocation Result (returned to Sequencer)
# ---------------------------------------------------------------------------
@dataclass
class InvocationResult:
    """
    Structured output from a single driver invocation.

    Fields
    ------
    exit_code : int
        Driver exit code (0 = pass). Negative when killed by a signal,
        -1 when the process could not be started.
    log_excerpt : str
        First and last lines of the driver's combined output.
    execution_time_seconds : float
        Wall clock duration of the invocation.
    timed_out : bool
        True if the stage timeout killed the driver.
    output_files : list[str]
        Paths of the tee'd console captures.
    error : str | None
        Infrastructure error (launch failure, I/O), not test failures.
    """
    exit_code: int = -1
    log_excerpt: str = ""
    execution_time_seconds: float = 0.0
    timed_out: bool = False
    output_files: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.timed_out and self.error is None


# ---------------------------------------------------------------------------
# Log Excerpt Helper
# ---------------------------------------------------------------------------
_EXCERPT_HEAD_LINES = 30
_EXCERPT_TAIL_LINES = 30


class LogExcerpt:
    """Keeps the first and last N lines of an unbounded stream."""

    def __init__(self, head: int = _EXCERPT_HEAD_LINES, tail: int = _EXCERPT_TAIL_LINES) -> None:
        self._head_cap = head
        self._head: List[str] = []
        self._tail: deque = deque(maxlen=tail)
        self._total = 0

    def add(self, line: str) -> None:
        self._total += 1
        if len(self._head) < self._head_cap:
            self._head.append(line)
        else:
            self._tail.append(line)

    def render(self) -> str:
        omitted = self._total - len(self._head) - len(self._tail)
        if omitted <= 0:
            return "\n".join(self._head + list(self._tail))
        return "\n".join(
            self._head
            + [f"\n... ({omitted} lines omitted) ...\n"]
            + list(self._tail)
        )


# ---------------------------------------------------------------------------
# Process Execution
# ---------------------------------------------------------------------------
_STREAM_LIMIT = 1 << 20  # max bytes per output line


class DriverInvoker:

    def __init__(
        self,
        timeout_seconds: float = STAGE_TIMEOUT_SECONDS,
        terminate_grace_seconds: float = TERMINATE_GRACE_SECONDS,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.terminate_grace_seconds = terminate_grace_seconds

    async def invoke(
        self,
        command: DriverCommand,
        cwd: str,
        env: Optional[Dict[str, str]] = None,
    ) -> InvocationResult:
        """
        Execute the driver and wait for it to finish.

        Lifecycle:
            1. Spawn the driver in ``cwd`` with ``env`` layered over os.environ
            2. Stream stdout/stderr to the log and to capture files
            3. Wait for exit (or timeout → terminate)
            4. Return InvocationResult

        Returns
        -------
        InvocationResult
            Always returned for process outcomes. Only asyncio.CancelledError
            propagates, after the driver has been terminated.
        """
        result = InvocationResult()
        excerpt = LogExcerpt()
        start_time = time.monotonic()
        stage = command.stage

        stdout_path = os.path.join(cwd, f"{stage}-driver.stdout.txt")
        stderr_path = os.path.join(cwd, f"{stage}-driver.stderr.txt")
        result.output_files = [stdout_path, stderr_path]

        full_env = dict(os.environ)
        if env:
            full_env.update(env)

        logger.info("[DRIVER:%s] Starting | cwd=%s | timeout=%ss | cmd=%s",
                    stage, cwd, self.timeout_seconds, command.display())

        proc = None
        try:
            proc = await asyncio.create_subprocess_exec(
                *command.argv,
                cwd=cwd,
                env=full_env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=_STREAM_LIMIT,
            )

            with open(stdout_path, "w", encoding="utf-8") as out_f, \
                 open(stderr_path, "w", encoding="utf-8") as err_f:
                communicate = asyncio.gather(
                    self._pump(proc.stdout, out_f, stage, "stdout", excerpt),
                    self._pump(proc.stderr, err_f, stage, "stderr", excerpt),
                    proc.wait(),
                )
                try:
                    await asyncio.wait_for(communicate, timeout=self.timeout_seconds)
                except asyncio.TimeoutError:
                    result.timed_out = True
                    logger.error("[DRIVER:%s] Timed out after %ss, terminating", stage, self.timeout_seconds)
                    await self._terminate(proc, stage)

            result.exit_code = proc.returncode if proc.returncode is not None else -1

        except asyncio.CancelledError:
            logger.warning("[DRIVER:%s] Invocation cancelled, terminating driver", stage)
            if proc is not None:
                await self._terminate(proc, stage)
            raise

        except OSError as e:
            result.error = f"Could not start driver: {e}"
            result.exit_code = -1
            logger.error("[DRIVER:%s] %s", stage, result.error)
            if proc is not None:
                await self._terminate(proc, stage)

        except Exception as e:
            # Catch-all: sequencer must always receive a result
            result.error = f"Unexpected invoker error: {type(e).__name__}: {e}"
            result.exit_code = -1
            logger.exception("[DRIVER:%s] %s", stage, result.error)
            if proc is not None:
                await self._terminate(proc, stage)

        result.execution_time_seconds = round(time.monotonic() - start_time, 3)
        result.log_excerpt = excerpt.render()

        logger.info(
            "[DRIVER:%s] Finished | exit=%d | time=%.2fs | timed_out=%s",
            stage, result.exit_code, result.execution_time_seconds, result.timed_out,
        )
        return result

    async def _pump(self, stream, sink, stage: str, label: str, excerpt: LogExcerpt) -> None:
        """Copy one pipe to its capture file and the live log."""
        while True:
            line = await stream.readline()
            if not line:
                break
            text = line.decode("utf-8", errors="replace")
            sink.write(text)
            sink.flush()
            stripped = text.rstrip("\r\n")
            excerpt.add(stripped)
            logger.info("[DRIVER:%s:%s] %s", stage, label, stripped)

    async def _terminate(self, proc, stage: str) -> None:
        """SIGTERM, wait for the grace period, then SIGKILL."""
        if proc.returncode is not None:
            return
        try:
            proc.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.terminate_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning("[DRIVER:%s] Driver ignored SIGTERM, killing", stage)
            try:
                proc.kill()
            except ProcessLookupError:
                return
            await proc.wait()
