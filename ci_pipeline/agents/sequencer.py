"""
Pipeline Sequencer
==================
Drives one PipelineRun through the fixed Debug → Release sequence.

State machine:
    not_started ──trigger──▶ debug_running ──▶ debug_done
    debug_done ──debug succeeded──▶ release_running ──▶ completed
    debug_done ──debug failed──▶ aborted (release skipped)
    any state ──precondition failure / cancellation──▶ aborted

Per-stage cycle:
    1. Prepare a fresh working tree
    2. Provision SSH credentials (driver account's ~/.ssh, originals set aside)
    3. Invoke the test driver against both hosts (blocking)
    4. ALWAYS: revoke credentials, collect + publish artifacts once the
       driver could be started
       (try/finally, so this also runs on failure and cancellation)

Guarantees:
    - Release never starts unless Debug succeeded.
    - Artifact collection for a stage completes before the advance/abort decision.
    - Overall status is succeeded iff every stage succeeded; anything else is failed.
    - No automatic retries.
"""
import time
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from ci_pipeline.core.config import ARTIFACT_DIR, HOST_PROBE_ENABLED, HOST_PROBE_TIMEOUT, KEEP_WORKSPACE, SSH_HOME
from ci_pipeline.core.errors import PipelineError, PreconditionError
from ci_pipeline.executor.command_builder import build_driver_command
from ci_pipeline.executor.driver_invoker import DriverInvoker
from ci_pipeline.models.artifact_set import ArtifactSet
from ci_pipeline.models.host import HostEndpoint, HostPair, HostRole
from ci_pipeline.models.pipeline_definition import PipelineDefinition
from ci_pipeline.models.pipeline_run import PipelineRun, RunStatus, SequencerState
from ci_pipeline.models.stage import StageDefinition, StageName, StageResult, StageStatus
from ci_pipeline.services.artifact_collector import ArtifactCollector
from ci_pipeline.services.artifact_publisher import ArtifactPublisher, default_publisher
from ci_pipeline.services.credential_provisioner import CredentialProvisioner, default_ssh_home
from ci_pipeline.services.host_probe import HostProbe, NullHostProbe
from ci_pipeline.services.results_writer import ResultsWriter
from ci_pipeline.services.secrets_provider import PipelineSecrets, SecretsProvider, load_pipeline_secrets
from ci_pipeline.services.workspace_service import WorkspaceService
from ci_pipeline.utils.branch_filter import branch_from_ref, is_trigger_branch

logger = logging.getLogger(__name__)

_RUNNING_STATE = {
    StageName.DEBUG: SequencerState.DEBUG_RUNNING,
    StageName.RELEASE: SequencerState.RELEASE_RUNNING,
}
_DONE_STATE = {
    StageName.DEBUG: SequencerState.DEBUG_DONE,
    StageName.RELEASE: SequencerState.COMPLETED,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineSequencer:
    """
    Orchestrates provisioning, driver invocation and artifact capture for
    both stages of a run.

    Every collaborator is injectable; defaults come from core.config.
    """

    def __init__(
        self,
        definition: PipelineDefinition,
        secrets_provider: SecretsProvider,
        invoker: Optional[DriverInvoker] = None,
        collector: Optional[ArtifactCollector] = None,
        publisher: Optional[ArtifactPublisher] = None,
        provisioner: Optional[CredentialProvisioner] = None,
        host_probe: Optional[HostProbe] = None,
        workspace: Optional[WorkspaceService] = None,
        results_dir: str = ARTIFACT_DIR,
        keep_workspace: bool = KEEP_WORKSPACE,
        ssh_home: str = SSH_HOME,
    ) -> None:
        self.definition = definition
        self.secrets_provider = secrets_provider
        self.invoker = invoker or DriverInvoker()
        self.collector = collector or ArtifactCollector()
        self.publisher = publisher or default_publisher()
        self.provisioner = provisioner or CredentialProvisioner()
        if host_probe is None:
            host_probe = HostProbe(HOST_PROBE_TIMEOUT) if HOST_PROBE_ENABLED else NullHostProbe()
        self.host_probe = host_probe
        self.workspace = workspace or WorkspaceService()
        self.results_dir = results_dir
        self.keep_workspace = keep_workspace
        self.ssh_home = ssh_home

    # ------------------------------------------------------------------
    # Trigger
    # ------------------------------------------------------------------
    def new_run(
        self,
        ref: str,
        commit_sha: Optional[str] = None,
    ) -> Optional[PipelineRun]:
        """
        Create a PipelineRun for a push, or None if ``ref`` does not trigger.
        """
        if not is_trigger_branch(ref, self.definition.trigger_branches):
            logger.info("[SEQ] Push to %r does not match trigger patterns, no run created", ref)
            return None

        run = PipelineRun(
            ref=ref,
            branch=branch_from_ref(ref),
            repository=self.definition.repository,
            commit_sha=commit_sha,
            stages=[StageResult(name=s.name) for s in self.definition.stages],
        )
        logger.info("[SEQ:%s] Run created for branch %s", run.run_id, run.branch)
        return run

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------
    async def run(self, run: PipelineRun) -> PipelineRun:
        """Execute both stages. Returns the same (mutated) run."""
        run.status = RunStatus.RUNNING
        run.started_at = _utcnow()
        logger.info("[SEQ:%s] Starting pipeline | ref=%s | repo=%s", run.run_id, run.ref, run.repository)

        try:
            # ===========================================================
            # 1. Preconditions: secrets + host reachability
            # ===========================================================
            secrets, hosts = await self._check_preconditions(run)

            # ===========================================================
            # 2. Stages, strictly sequential
            # ===========================================================
            for stage_def in self.definition.stages:
                result = run.stage(stage_def.name)

                if stage_def.depends_on is not None:
                    dependency = run.stage(stage_def.depends_on)
                    if dependency is None or dependency.status != StageStatus.SUCCEEDED:
                        dep_status = dependency.status.value if dependency else "missing"
                        self._abort(
                            run,
                            f"Stage {stage_def.depends_on.value} {dep_status}; "
                            f"{stage_def.name.value} skipped",
                        )
                        break

                run.state = _RUNNING_STATE[stage_def.name]
                await self._run_stage(run, stage_def, result, secrets, hosts)
                run.state = _DONE_STATE[stage_def.name]

        except PreconditionError as e:
            logger.error("[SEQ:%s] Precondition failed: %s", run.run_id, e)
            self._abort(run, f"Precondition failed: {e}")

        except asyncio.CancelledError:
            logger.warning("[SEQ:%s] Run cancelled", run.run_id)
            self._abort(run, "Run cancelled")
            self._finalize(run)
            raise

        self._finalize(run)
        return run

    async def _check_preconditions(self, run: PipelineRun) -> Tuple[PipelineSecrets, HostPair]:
        secrets = load_pipeline_secrets(self.secrets_provider)
        hosts = HostPair(
            server=HostEndpoint(
                role=HostRole.SERVER,
                hostname=secrets.server_hostname,
                address=self.definition.server_addr,
                user=secrets.ssh_username,
                port=secrets.ssh_port,
            ),
            client=HostEndpoint(
                role=HostRole.CLIENT,
                hostname=secrets.client_hostname,
                address=self.definition.client_addr,
                user=secrets.ssh_username,
                port=secrets.ssh_port,
            ),
        )
        await self.host_probe.ensure_reachable(hosts)
        logger.info("[SEQ:%s] Preconditions met | server_addr=%s | client_addr=%s",
                    run.run_id, hosts.server.address, hosts.client.address)
        return secrets, hosts

    async def _run_stage(
        self,
        run: PipelineRun,
        stage_def: StageDefinition,
        result: StageResult,
        secrets: PipelineSecrets,
        hosts: HostPair,
    ) -> None:
        stage = stage_def.name.value
        logger.info("[SEQ:%s] --- Stage %s ---", run.run_id, stage)
        result.status = StageStatus.RUNNING
        result.started_at = _utcnow()
        start = time.monotonic()
        workdir = ""
        credential = None

        try:
            workdir = self.workspace.prepare_stage(run, stage_def.name)
            result.working_dir = workdir

            credential = self.provisioner.provision(
                home_dir=self.ssh_home or default_ssh_home(),
                private_key=secrets.ssh_private_key,
                username=secrets.ssh_username,
                port=secrets.ssh_port,
            )
            stage_hosts = HostPair(
                server=hosts.server.model_copy(update={"identity_file": credential.key_path}),
                client=hosts.client.model_copy(update={"identity_file": credential.key_path}),
            )

            command = build_driver_command(
                driver=self.definition.driver_command,
                stage=stage_def,
                hosts=stage_hosts,
                repository=run.repository,
                branch=run.branch,
                libos=self.definition.libos,
            )
            result.command = list(command.argv)

            invocation = await self.invoker.invoke(
                command, cwd=workdir, env={"HOME": credential.home_dir}
            )
            result.exit_code = invocation.exit_code
            result.timed_out = invocation.timed_out
            result.log_excerpt = invocation.log_excerpt
            result.error = invocation.error
            result.status = StageStatus.SUCCEEDED if invocation.succeeded else StageStatus.FAILED

        except asyncio.CancelledError:
            result.status = StageStatus.FAILED
            result.cancelled = True
            result.error = "Stage cancelled"
            raise

        except PreconditionError as e:
            # Credentials could not be set up; the driver never started
            result.status = StageStatus.SKIPPED
            result.error = str(e)
            raise

        except (PipelineError, ValueError) as e:
            result.status = StageStatus.FAILED
            result.error = str(e)
            logger.error("[SEQ:%s] Stage %s could not run: %s", run.run_id, stage, e)

        except Exception as e:
            # Catch-all: an invoker crash is a stage failure, not a run crash
            result.status = StageStatus.FAILED
            result.error = f"Unexpected stage error: {type(e).__name__}: {e}"
            logger.exception("[SEQ:%s] Stage %s crashed", run.run_id, stage)

        finally:
            result.finished_at = _utcnow()
            result.duration_seconds = round(time.monotonic() - start, 3)
            if credential is not None:
                self.provisioner.revoke(credential)
            if result.status != StageStatus.SKIPPED:
                result.artifacts = await self._collect_artifacts(run, stage_def, workdir)
            logger.info(
                "[SEQ:%s] Stage %s %s | exit=%s | artifacts=%d",
                run.run_id, stage, result.status.value, result.exit_code,
                len(result.artifacts.files) if result.artifacts else 0,
            )

    async def _collect_artifacts(self, run: PipelineRun, stage_def: StageDefinition, workdir: str) -> ArtifactSet:
        """Collect and publish; failures end up on ArtifactSet.error only."""
        name = stage_def.bundle_name
        try:
            artifact_set = self.collector.collect(workdir, stage_def.name.value, name)
            publish_error = await self.publisher.publish(run.run_id, artifact_set)
            if publish_error and not artifact_set.error:
                artifact_set.error = publish_error
            return artifact_set
        except Exception as e:
            # Catch-all: collection must never change the stage outcome
            logger.exception("[SEQ:%s] Artifact collection for %s failed", run.run_id, name)
            return ArtifactSet(
                name=name,
                stage=stage_def.name.value,
                root=workdir,
                collected_at=_utcnow(),
                error=f"Collection failed: {type(e).__name__}: {e}",
            )

    # ------------------------------------------------------------------
    # Termination
    # ------------------------------------------------------------------
    def _abort(self, run: PipelineRun, reason: str) -> None:
        run.state = SequencerState.ABORTED
        run.error = reason
        for result in run.stages:
            if result.status == StageStatus.PENDING:
                result.status = StageStatus.SKIPPED
            elif result.status == StageStatus.RUNNING:
                result.status = StageStatus.FAILED
        logger.warning("[SEQ:%s] Aborted: %s", run.run_id, reason)

    def abort_run(self, run: PipelineRun, reason: str) -> None:
        """Terminate a run from outside the stage loop (queued cancel, crash)."""
        self._abort(run, reason)
        self._finalize(run)

    def cancel_pending(self, run: PipelineRun) -> None:
        """Terminate a run that was cancelled before it started."""
        self.abort_run(run, "Run cancelled before start")

    def _finalize(self, run: PipelineRun) -> None:
        executed = [s for s in run.stages if s.status != StageStatus.SKIPPED]
        all_passed = bool(executed) and all(s.status == StageStatus.SUCCEEDED for s in executed)
        if run.state == SequencerState.COMPLETED and all_passed:
            run.status = RunStatus.SUCCEEDED
        else:
            run.status = RunStatus.FAILED
        run.finished_at = _utcnow()

        ResultsWriter.write_results(run, self.results_dir)
        if not self.keep_workspace:
            self.workspace.cleanup(run.run_id)

        logger.info(
            "[SEQ:%s] Pipeline %s | state=%s | stages=%s | artifact_sets=%s",
            run.run_id, run.status.value, run.state.value,
            ", ".join(f"{s.name.value}={s.status.value}" for s in run.stages),
            [a.name for a in run.artifact_sets],
        )
