"""
API Dependencies
================
Lazily builds the process-wide RunRegistry from configuration.

Tests replace these with ``app.dependency_overrides[...]``.
"""
import logging
from typing import Optional

from ci_pipeline.agents.sequencer import PipelineSequencer
from ci_pipeline.core.constants import SECRET_WEBHOOK
from ci_pipeline.parser.pipeline_config import load_pipeline_definition
from ci_pipeline.services.secrets_provider import EnvSecretsProvider
from ci_pipeline.state.run_registry import RunRegistry

logger = logging.getLogger(__name__)

_registry: Optional[RunRegistry] = None


def build_registry() -> RunRegistry:
    definition = load_pipeline_definition()
    sequencer = PipelineSequencer(definition, secrets_provider=EnvSecretsProvider())
    logger.info("Run registry ready | libos=%s | triggers=%s", definition.libos, definition.trigger_branches)
    return RunRegistry(sequencer)


def get_registry() -> RunRegistry:
    global _registry
    if _registry is None:
        _registry = build_registry()
    return _registry


def peek_registry() -> Optional[RunRegistry]:
    """Return the registry if it was ever built (used at shutdown)."""
    return _registry


def get_webhook_secret() -> str:
    """Shared secret for push signatures; empty when not configured."""
    return EnvSecretsProvider().get(SECRET_WEBHOOK) or ""
