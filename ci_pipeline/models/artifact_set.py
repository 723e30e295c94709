"""
Artifact Set Model
==================
Diagnostic files collected for one stage.

Fields:
    name            — bundle name (e.g. "debug-pipeline-logs")
    stage           — source stage name
    root            — working tree the files were collected from
    files           — paths relative to root, forward slashes, sorted
    collected_at    — UTC collection time
    published_to    — destination reported by the publisher ("" if unpublished)
    error           — collection or publish error, if any (never changes stage status)
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class ArtifactSet(BaseModel):
    name: str
    stage: str
    root: str = ""
    files: List[str] = []
    collected_at: datetime
    published_to: str = ""
    error: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.files
