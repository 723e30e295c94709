"""
Workspace Service
=================
Manages per-run directories on the orchestrator machine.

Layout:
    <WORKSPACE_ROOT>/<run_id>/debug/      fresh working tree for stage 1
    <WORKSPACE_ROOT>/<run_id>/release/    fresh working tree for stage 2

Philosophy:
    - Every stage gets a FRESH tree so its ArtifactSet only holds its own output.
    - With CHECKOUT_URL set, the tree is a git clone of the pushed revision.
    - Otherwise SOURCE_TREE (the CI checkout) is copied, minus ignore rules.
"""
import os
import shutil
import logging
import subprocess
from typing import Optional

from ci_pipeline.core.config import ARTIFACT_DIR, CHECKOUT_URL, LOG_DIR, SOURCE_TREE, WORKSPACE_ROOT
from ci_pipeline.core.errors import WorkspaceError
from ci_pipeline.models.pipeline_run import PipelineRun
from ci_pipeline.models.stage import StageName
from ci_pipeline.utils.ignore_rules import copy_ignore

logger = logging.getLogger(__name__)


class WorkspaceService:

    def __init__(
        self,
        root: str = WORKSPACE_ROOT,
        source_tree: Optional[str] = SOURCE_TREE,
        checkout_url: str = CHECKOUT_URL,
    ) -> None:
        self.root = os.path.abspath(root)
        self.source_tree = source_tree
        self.checkout_url = checkout_url

    def run_dir(self, run_id: str) -> str:
        return os.path.join(self.root, run_id)

    def prepare_stage(self, run: PipelineRun, stage: StageName) -> str:
        """
        Create a fresh working tree for one stage.

        Returns
        -------
        str
            Absolute path of the stage working tree.

        Raises
        ------
        WorkspaceError
            Clone or copy failed.
        """
        dest = os.path.join(self.run_dir(run.run_id), stage.value)
        try:
            if os.path.exists(dest):
                logger.info("Removing stale working tree %s", dest)
                shutil.rmtree(dest)
            os.makedirs(os.path.dirname(dest), exist_ok=True)
        except OSError as e:
            raise WorkspaceError(f"Could not reset {dest}: {e}") from e

        if self.checkout_url:
            self._clone(run, dest)
        elif self.source_tree:
            self._copy_source(dest)
        else:
            try:
                os.makedirs(dest)
            except OSError as e:
                raise WorkspaceError(f"Could not create {dest}: {e}") from e

        logger.info("Working tree ready | stage=%s | path=%s", stage.value, dest)
        return dest

    def _clone(self, run: PipelineRun, dest: str) -> None:
        target = run.commit_sha or f"origin/{run.branch}"
        logger.info("Cloning %s into %s (checkout %s)", self.checkout_url, dest, target)
        try:
            subprocess.run(
                ["git", "clone", "--quiet", self.checkout_url, dest],
                check=True,
                capture_output=True,
                text=True,
            )
            subprocess.run(
                ["git", "checkout", "--quiet", target],
                cwd=dest,
                check=True,
                capture_output=True,
                text=True,
            )
        except subprocess.CalledProcessError as e:
            logger.error("Checkout failed: %s", e.stderr)
            raise WorkspaceError(f"Checkout of {target} failed: {(e.stderr or '').strip()}") from e
        except OSError as e:
            raise WorkspaceError(f"Could not run git: {e}") from e

    def _copy_source(self, dest: str) -> None:
        source = os.path.abspath(self.source_tree)
        if not os.path.isdir(source):
            raise WorkspaceError(f"Source tree {source} does not exist")
        logger.info("Copying source tree %s into %s", source, dest)
        try:
            shutil.copytree(source, dest, symlinks=True, ignore=copy_ignore([
                self.root, os.path.join(source, ARTIFACT_DIR), os.path.join(source, LOG_DIR),
            ]))
        except (OSError, shutil.Error) as e:
            raise WorkspaceError(f"Copying {source} failed: {e}") from e

    def cleanup(self, run_id: str) -> None:
        """Wipe the run directory (all stage working trees)."""
        path = self.run_dir(run_id)
        if os.path.exists(path):
            logger.info("Cleaning run workspace: %s", path)
            shutil.rmtree(path, ignore_errors=True)
