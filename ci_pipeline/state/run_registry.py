"""
Run Registry
============
In-process record of PipelineRuns and the background tasks executing them.

The server/client host pair is an exclusive resource: the driver assumes
it owns both machines' network interfaces for a whole campaign. Runs are
therefore serialised on a single asyncio.Lock. A run waiting for the lock
stays "pending".

Used by:
    - API routes (trigger, status, cancel)
"""
import asyncio
import logging
from collections import OrderedDict
from typing import Dict, List, Optional

from ci_pipeline.agents.sequencer import PipelineSequencer
from ci_pipeline.models.pipeline_run import PipelineRun

logger = logging.getLogger(__name__)

_MAX_HISTORY = 200


class RunRegistry:

    def __init__(self, sequencer: PipelineSequencer, max_history: int = _MAX_HISTORY) -> None:
        self.sequencer = sequencer
        self.max_history = max_history
        self._runs: "OrderedDict[str, PipelineRun]" = OrderedDict()
        self._tasks: Dict[str, asyncio.Task] = {}
        self._host_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def get(self, run_id: str) -> Optional[PipelineRun]:
        return self._runs.get(run_id)

    def list_runs(self) -> List[PipelineRun]:
        return list(reversed(self._runs.values()))

    def is_active(self, run_id: str) -> bool:
        task = self._tasks.get(run_id)
        return task is not None and not task.done()

    def _remember(self, run: PipelineRun) -> None:
        self._runs[run.run_id] = run
        # Evict oldest finished runs beyond the history cap
        while len(self._runs) > self.max_history:
            oldest_id = next(iter(self._runs))
            if self.is_active(oldest_id):
                break
            self._runs.pop(oldest_id)

    # ------------------------------------------------------------------
    # Trigger / execute / cancel
    # ------------------------------------------------------------------
    def trigger(
        self,
        ref: str,
        commit_sha: Optional[str] = None,
    ) -> Optional[PipelineRun]:
        """
        Create a run for a push and schedule it. Must be called from a
        running event loop. Returns None when the branch does not trigger.
        """
        run = self.sequencer.new_run(ref, commit_sha=commit_sha)
        if run is None:
            return None
        self._remember(run)
        self._tasks[run.run_id] = asyncio.get_running_loop().create_task(self.execute(run))
        return run

    async def execute(self, run: PipelineRun) -> PipelineRun:
        """Wait for the host pair, then run the pipeline."""
        if self._host_lock.locked():
            logger.info("[REGISTRY] Run %s queued, host pair busy", run.run_id)
        try:
            async with self._host_lock:
                return await self.sequencer.run(run)
        except asyncio.CancelledError:
            if not run.is_terminal:
                # Cancelled while queued for the host pair
                self.sequencer.cancel_pending(run)
            raise
        except Exception as e:
            logger.exception("[REGISTRY] Run %s crashed", run.run_id)
            self.sequencer.abort_run(run, f"Internal error: {type(e).__name__}: {e}")
            return run
        finally:
            self._tasks.pop(run.run_id, None)

    def cancel(self, run_id: str) -> bool:
        """Request cancellation. False if the run is unknown or already finished."""
        task = self._tasks.get(run_id)
        if task is None or task.done():
            return False
        logger.warning("[REGISTRY] Cancelling run %s", run_id)
        task.cancel()
        return True

    async def shutdown(self) -> None:
        """Cancel every active run and wait for artifact collection to finish."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
