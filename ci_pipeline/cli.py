"""
Command Line Entry
==================
Runs one pipeline in the foreground, for use from inside a CI job:

    python -m ci_pipeline run --ref "$GITHUB_REF" [--sha SHA] [--config pipeline.yml]
    python -m ci_pipeline check-branch feature-xyz

Exit codes:
    0  pipeline succeeded
    1  pipeline failed (stage failure, precondition failure, cancellation)
    2  branch does not trigger the pipeline / bad configuration

SIGTERM and SIGINT cancel the run; the in-flight stage still gets its
artifacts collected before the process exits.
"""
import sys
import signal
import asyncio
import logging
import argparse
from typing import List, Optional

from ci_pipeline.agents.sequencer import PipelineSequencer
from ci_pipeline.core.config import KEEP_WORKSPACE
from ci_pipeline.core.errors import PipelineConfigError
from ci_pipeline.models.pipeline_run import RunStatus
from ci_pipeline.parser.pipeline_config import load_pipeline_definition
from ci_pipeline.services.host_probe import NullHostProbe
from ci_pipeline.services.secrets_provider import EnvSecretsProvider
from ci_pipeline.utils.branch_filter import is_trigger_branch
from ci_pipeline.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

EXIT_SUCCEEDED = 0
EXIT_FAILED = 1
EXIT_NOT_TRIGGERED = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ci_pipeline", description="Two-host debug/release test pipeline")
    parser.add_argument("--config", default=None, help="YAML pipeline definition")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the pipeline for a pushed ref")
    run.add_argument("--ref", required=True, help="Pushed ref or branch name")
    run.add_argument("--sha", default=None, help="Pushed commit")
    run.add_argument("--no-probe", action="store_true", help="Skip the host reachability check")
    run.add_argument("--keep-workspace", action="store_true", default=KEEP_WORKSPACE,
                     help="Keep per-stage working trees")

    check = sub.add_parser("check-branch", help="Report whether a ref triggers the pipeline")
    check.add_argument("ref")
    return parser


async def _run_pipeline(sequencer: PipelineSequencer, ref: str, sha: Optional[str]) -> int:
    run = sequencer.new_run(ref, commit_sha=sha)
    if run is None:
        return EXIT_NOT_TRIGGERED

    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, task.cancel)
        except (NotImplementedError, RuntimeError):
            logger.debug("Signal handler for %s unavailable on this platform", sig)

    try:
        await sequencer.run(run)
    except asyncio.CancelledError:
        logger.error("Pipeline %s cancelled", run.run_id)
        return EXIT_FAILED

    return EXIT_SUCCEEDED if run.status == RunStatus.SUCCEEDED else EXIT_FAILED


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        definition = load_pipeline_definition(args.config)
    except PipelineConfigError as e:
        logger.error("%s", e)
        return EXIT_NOT_TRIGGERED

    if args.command == "check-branch":
        triggers = is_trigger_branch(args.ref, definition.trigger_branches)
        print(f"{args.ref}: {'triggers' if triggers else 'does not trigger'}")
        return EXIT_SUCCEEDED if triggers else EXIT_NOT_TRIGGERED

    sequencer = PipelineSequencer(
        definition,
        secrets_provider=EnvSecretsProvider(),
        host_probe=NullHostProbe() if args.no_probe else None,
        keep_workspace=args.keep_workspace,
    )
    return asyncio.run(_run_pipeline(sequencer, args.ref, args.sha))


if __name__ == "__main__":
    sys.exit(main())
