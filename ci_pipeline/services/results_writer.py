"""
Results Writer
==============
Serializes a finished PipelineRun into results.json next to its artifacts.
"""
import json
import logging
import os
from typing import Any, Dict

from ci_pipeline.models.pipeline_run import PipelineRun

logger = logging.getLogger(__name__)

class ResultsWriter:
    """
    Service responsible for compiling a run's stage history and aggregated
    status into a structured JSON file for humans and dashboards.
    """

    @staticmethod
    def build_summary(run: PipelineRun) -> Dict[str, Any]:
        data = {
            "run": {
                "run_id": run.run_id,
                "ref": run.ref,
                "branch": run.branch,
                "repository": run.repository,
                "commit_sha": run.commit_sha,
            },
            "stages": [],
            "final_results": {
                "status": run.status.value,
                "state": run.state.value,
                "error": run.error,
                "artifact_sets": [a.name for a in run.artifact_sets],
            },
        }
        for stage in run.stages:
            data["stages"].append(stage.model_dump(mode="json"))
        return data

    @staticmethod
    def write_results(run: PipelineRun, output_dir: str) -> bool:
        """
        Write <output_dir>/<run_id>/results.json.

        Returns False (and logs) on failure; the run status is unaffected.
        """
        try:
            data = ResultsWriter.build_summary(run)
            run_dir = os.path.abspath(os.path.join(output_dir, run.run_id))
            os.makedirs(run_dir, exist_ok=True)
            abs_output = os.path.join(run_dir, "results.json")
            logger.info("Writing final results to %s", abs_output)

            with open(abs_output, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)

            return True

        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to write results.json: %s", e, exc_info=True)
            return False
