"""
Stage Models
============
Definition and outcome of one pipeline stage.

StageDefinition is static (what to run). StageResult is produced per run
(what happened). Release always depends on Debug.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from ci_pipeline.core.constants import ALL_SYSTEM_TESTS, ARTIFACT_NAME_TEMPLATE
from ci_pipeline.models.artifact_set import ArtifactSet


class StageName(str, Enum):
    DEBUG = "debug"
    RELEASE = "release"


class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


TERMINAL_STAGE_STATUSES = frozenset({
    StageStatus.SUCCEEDED,
    StageStatus.FAILED,
    StageStatus.SKIPPED,
})


class StageDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: StageName
    depends_on: Optional[StageName] = None
    debug: bool = False
    test_unit: bool = True
    test_system: Optional[str] = ALL_SYSTEM_TESTS   # suite name, "all", or None
    delay: int = 2
    artifact_name: str = ""

    @property
    def bundle_name(self) -> str:
        return self.artifact_name or ARTIFACT_NAME_TEMPLATE.format(stage=self.name.value)


class StageResult(BaseModel):
    name: StageName
    status: StageStatus = StageStatus.PENDING
    exit_code: Optional[int] = None
    command: List[str] = []
    working_dir: str = ""
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    timed_out: bool = False
    cancelled: bool = False
    log_excerpt: str = ""
    artifacts: Optional[ArtifactSet] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STAGE_STATUSES


def default_stages(delay: int = 2) -> List[StageDefinition]:
    """Debug run followed by a release run with identical test selection."""
    return [
        StageDefinition(name=StageName.DEBUG, debug=True, delay=delay),
        StageDefinition(name=StageName.RELEASE, depends_on=StageName.DEBUG, debug=False, delay=delay),
    ]
