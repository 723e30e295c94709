"""
Pipeline Definition Model
=========================
Static description of one deployment: what the driver targets, where the
hosts live on the test network, which branches trigger, and the two stages.

Built from core.config defaults, optionally overridden by a YAML file
(see ci_pipeline/parser/pipeline_config.py).
"""
from typing import List

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ci_pipeline.core.config import (
    CLIENT_ADDR,
    DRIVER_COMMAND,
    LIBOS,
    PIPELINE_REPOSITORY,
    SERVER_ADDR,
    TEST_DELAY,
)
from ci_pipeline.core.constants import TRIGGER_BRANCH_PATTERNS
from ci_pipeline.models.stage import StageDefinition, StageName, default_stages


class PipelineDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    libos: str = Field(default=LIBOS, min_length=1)
    repository: str = Field(default=PIPELINE_REPOSITORY, min_length=1)
    server_addr: str = Field(default=SERVER_ADDR, min_length=1)
    client_addr: str = Field(default=CLIENT_ADDR, min_length=1)
    driver_command: str = Field(default=DRIVER_COMMAND, min_length=1)
    trigger_branches: List[str] = Field(default_factory=lambda: list(TRIGGER_BRANCH_PATTERNS))
    stages: List[StageDefinition] = Field(default_factory=lambda: default_stages(TEST_DELAY))

    @model_validator(mode="after")
    def _check_stage_order(self) -> "PipelineDefinition":
        names = [s.name for s in self.stages]
        if names != [StageName.DEBUG, StageName.RELEASE]:
            raise ValueError(f"stages must be [debug, release], got {[n.value for n in names]}")
        if self.stages[0].depends_on is not None:
            raise ValueError("debug stage cannot depend on another stage")
        if self.stages[1].depends_on != StageName.DEBUG:
            raise ValueError("release stage must depend on debug")
        return self
