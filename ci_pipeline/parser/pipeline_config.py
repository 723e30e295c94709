"""
Pipeline Config Reader
======================
Parses an optional YAML deployment file into a PipelineDefinition.

Format:
    libos: catnap
    repository: demikernel/demikernel
    server_addr: 10.3.1.10
    client_addr: 10.3.1.11
    driver_command: python3 tools/demikernel_ci.py
    delay: 2                       # default for stages without their own
    trigger_branches: [main, dev, feature-*]
    stages:
      debug:   {test_unit: true, test_system: all}
      release: {test_system: tcp_echo, artifact_name: release-logs}

Rules:
    - Any omitted key keeps its core.config default.
    - Only "debug" and "release" stages exist; the debug flag is fixed by
      the stage name and release always depends on debug.
    - Malformed input → PipelineConfigError.

Deterministic:
    Same file → same PipelineDefinition, always.
"""
import os
import logging
from typing import Any, Dict, Optional

import yaml

from ci_pipeline.core.config import PIPELINE_CONFIG, TEST_DELAY
from ci_pipeline.core.errors import PipelineConfigError
from ci_pipeline.models.pipeline_definition import PipelineDefinition
from ci_pipeline.models.stage import StageDefinition, StageName

logger = logging.getLogger(__name__)

_TOP_LEVEL_KEYS = {
    "libos", "repository", "server_addr", "client_addr",
    "driver_command", "delay", "trigger_branches", "stages",
}
_STAGE_KEYS = {"test_unit", "test_system", "delay", "artifact_name"}


def _build_stage(name: StageName, raw: Dict[str, Any], default_delay: int) -> StageDefinition:
    unknown = set(raw) - _STAGE_KEYS
    if unknown:
        raise PipelineConfigError(f"Unknown keys for stage '{name.value}': {sorted(unknown)}")
    params = {
        "name": name,
        "debug": name == StageName.DEBUG,
        "depends_on": StageName.DEBUG if name == StageName.RELEASE else None,
        "delay": raw.get("delay", default_delay),
    }
    for key in ("test_unit", "test_system", "artifact_name"):
        if key in raw:
            params[key] = raw[key]
    return StageDefinition(**params)


def parse_pipeline_definition(data: Optional[Dict[str, Any]]) -> PipelineDefinition:
    """Convert parsed YAML into a validated PipelineDefinition."""
    if data is None:
        return PipelineDefinition()
    if not isinstance(data, dict):
        raise PipelineConfigError("Pipeline config must be a mapping")

    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise PipelineConfigError(f"Unknown pipeline config keys: {sorted(unknown)}")

    raw_stages = data.get("stages") or {}
    if not isinstance(raw_stages, dict):
        raise PipelineConfigError("'stages' must be a mapping of stage name to parameters")

    for key in raw_stages:
        if key not in {s.value for s in StageName}:
            raise PipelineConfigError(f"Unknown stage '{key}' (expected debug or release)")

    try:
        default_delay = int(data.get("delay", TEST_DELAY))
        stages = [
            _build_stage(name, raw_stages.get(name.value) or {}, default_delay)
            for name in (StageName.DEBUG, StageName.RELEASE)
        ]
        fields = {k: v for k, v in data.items() if k not in ("delay", "stages")}
        return PipelineDefinition(stages=stages, **fields)
    except (ValueError, TypeError) as e:
        # pydantic.ValidationError is a ValueError subclass
        raise PipelineConfigError(f"Invalid pipeline config: {e}") from e


def load_pipeline_definition(path: Optional[str] = None) -> PipelineDefinition:
    """
    Load the deployment's PipelineDefinition.

    Parameters
    ----------
    path : str | None
        YAML file. Falls back to PIPELINE_CONFIG; with neither set the
        built-in defaults are returned.
    """
    path = path or PIPELINE_CONFIG
    if not path:
        return PipelineDefinition()

    if not os.path.isfile(path):
        raise PipelineConfigError(f"Pipeline config {path} not found")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise PipelineConfigError(f"Failed to parse {path}: {e}") from e

    definition = parse_pipeline_definition(data)
    logger.info("Loaded pipeline definition from %s | libos=%s | stages=%s",
                path, definition.libos, [s.name.value for s in definition.stages])
    return definition
