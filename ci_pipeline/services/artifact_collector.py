"""
Artifact Collector
==================
Sweeps a stage's working tree for diagnostic files after the stage ends.

Rules:
    - Matches "**/*.stdout.txt" and "**/*.stderr.txt" (recursive).
    - Runs after EVERY stage, whatever its outcome.
    - No matching files → empty ArtifactSet, not an error.
    - A walk failure is logged and stored on ArtifactSet.error; it never
      changes the stage's pass/fail status.
"""
import os
import logging
from datetime import datetime, timezone
from typing import Iterable, List

from ci_pipeline.core.constants import ARTIFACT_SUFFIXES
from ci_pipeline.models.artifact_set import ArtifactSet

logger = logging.getLogger(__name__)


def find_artifact_files(root: str, suffixes: Iterable[str] = ARTIFACT_SUFFIXES) -> List[str]:
    """
    Return sorted root-relative paths (forward slashes) of matching files.

    Raises OSError if ``root`` cannot be listed.
    """
    suffixes = tuple(suffixes)
    found: List[str] = []

    def _raise(err: OSError) -> None:
        raise err

    for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise):
        for fname in filenames:
            if fname.endswith(suffixes):
                rel = os.path.relpath(os.path.join(dirpath, fname), root)
                found.append(rel.replace(os.sep, "/"))
    return sorted(found)


class ArtifactCollector:

    def __init__(self, suffixes: Iterable[str] = ARTIFACT_SUFFIXES) -> None:
        self.suffixes = tuple(suffixes)

    def collect(self, root: str, stage: str, name: str) -> ArtifactSet:
        """
        Collect diagnostics under ``root`` into a named ArtifactSet.

        Never raises for filesystem problems.
        """
        artifact_set = ArtifactSet(
            name=name,
            stage=stage,
            root=os.path.abspath(root) if root else "",
            collected_at=datetime.now(timezone.utc),
        )
        if not root or not os.path.isdir(root):
            logger.warning("[ARTIFACTS:%s] Working tree %r missing, empty artifact set", stage, root)
            return artifact_set

        try:
            artifact_set.files = find_artifact_files(root, self.suffixes)
        except OSError as e:
            artifact_set.error = f"Collection failed: {e}"
            logger.error("[ARTIFACTS:%s] %s", stage, artifact_set.error)
            return artifact_set

        logger.info("[ARTIFACTS:%s] Collected %d file(s) into %s", stage, len(artifact_set.files), name)
        return artifact_set
