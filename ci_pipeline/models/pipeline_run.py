"""
Pipeline Run Model
==================
Pydantic model tracking one end-to-end execution for a pushed revision.

Fields:
    run_id          — short unique identifier
    ref             — revision reference as pushed (e.g. "refs/heads/main")
    branch          — ref with "refs/heads/" stripped
    repository      — source repository identifier handed to the driver
    commit_sha      — pushed commit, when the trigger supplied it
    status          — pending | running | succeeded | failed
    state           — sequencer state machine position
    stages          — ordered StageResult list (debug, release)
    error           — precondition / abort reason, if any

Used by:
    - PipelineSequencer to record progress
    - RunRegistry / API to report status
    - ResultsWriter to produce results.json
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from ci_pipeline.models.artifact_set import ArtifactSet
from ci_pipeline.models.stage import StageName, StageResult


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SequencerState(str, Enum):
    NOT_STARTED = "not_started"
    DEBUG_RUNNING = "debug_running"
    DEBUG_DONE = "debug_done"
    RELEASE_RUNNING = "release_running"
    COMPLETED = "completed"
    ABORTED = "aborted"


def _new_run_id() -> str:
    return uuid.uuid4().hex[:12]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineRun(BaseModel):
    run_id: str = Field(default_factory=_new_run_id)
    ref: str
    branch: str
    repository: str
    commit_sha: Optional[str] = None
    status: RunStatus = RunStatus.PENDING
    state: SequencerState = SequencerState.NOT_STARTED
    stages: List[StageResult] = []
    created_at: datetime = Field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None

    def stage(self, name: StageName) -> Optional[StageResult]:
        for result in self.stages:
            if result.name == name:
                return result
        return None

    @property
    def artifact_sets(self) -> List[ArtifactSet]:
        return [s.artifacts for s in self.stages if s.artifacts is not None]

    @property
    def is_terminal(self) -> bool:
        return self.status in (RunStatus.SUCCEEDED, RunStatus.FAILED)
