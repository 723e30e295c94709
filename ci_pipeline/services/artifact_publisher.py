"""
Artifact Publisher
==================
Persists a collected ArtifactSet somewhere a human can reach it.

Implementations:
    - LocalArtifactPublisher : copies into <ARTIFACT_DIR>/<run_id>/<bundle>/
    - HttpArtifactPublisher  : uploads each file to ARTIFACT_UPLOAD_URL

Publishing the same set twice overwrites identical paths, so a repeated
collection only ever adds files.

Errors are returned as strings (and logged), never raised, so a broken
store cannot mask the stage result.
"""
import os
import shutil
import logging
from typing import Optional, Protocol

import httpx

from ci_pipeline.core.config import ARTIFACT_DIR, ARTIFACT_UPLOAD_TOKEN, ARTIFACT_UPLOAD_URL
from ci_pipeline.models.artifact_set import ArtifactSet

logger = logging.getLogger(__name__)


class ArtifactPublisher(Protocol):
    async def publish(self, run_id: str, artifact_set: ArtifactSet) -> Optional[str]:
        """Publish the set. Return an error string, or None on success."""
        ...


class LocalArtifactPublisher:

    def __init__(self, base_dir: str = ARTIFACT_DIR) -> None:
        self.base_dir = base_dir

    def bundle_dir(self, run_id: str, name: str) -> str:
        return os.path.abspath(os.path.join(self.base_dir, run_id, name))

    async def publish(self, run_id: str, artifact_set: ArtifactSet) -> Optional[str]:
        dest_root = self.bundle_dir(run_id, artifact_set.name)
        try:
            os.makedirs(dest_root, exist_ok=True)
            for rel in artifact_set.files:
                src = os.path.join(artifact_set.root, rel)
                dest = os.path.join(dest_root, rel)
                os.makedirs(os.path.dirname(dest), exist_ok=True)
                shutil.copy2(src, dest)
        except OSError as e:
            logger.error("[PUBLISH] Local publish of %s failed: %s", artifact_set.name, e)
            return f"Publish failed: {e}"

        artifact_set.published_to = dest_root
        logger.info("[PUBLISH] %s → %s (%d file(s))", artifact_set.name, dest_root, len(artifact_set.files))
        return None


class HttpArtifactPublisher:
    """
    Uploads files as multipart form posts:

        POST <url>/<run_id>/<bundle>
        form: path=<relative path>, file=<content>
    """

    def __init__(
        self,
        url: str = ARTIFACT_UPLOAD_URL,
        token: str = ARTIFACT_UPLOAD_TOKEN,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.headers = {"User-Agent": "two-host-ci-pipeline"}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        self.timeout = timeout
        self._transport = transport

    async def publish(self, run_id: str, artifact_set: ArtifactSet) -> Optional[str]:
        target = f"{self.url}/{run_id}/{artifact_set.name}"
        try:
            async with httpx.AsyncClient(
                headers=self.headers, timeout=self.timeout, transport=self._transport
            ) as client:
                for rel in artifact_set.files:
                    path = os.path.join(artifact_set.root, rel)
                    with open(path, "rb") as f:
                        response = await client.post(
                            target,
                            data={"path": rel},
                            files={"file": (os.path.basename(rel), f, "text/plain")},
                        )
                    response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error("[PUBLISH] Upload of %s rejected: HTTP %d", artifact_set.name, status_code)
            return f"Upload failed: HTTP {status_code}"
        except (httpx.HTTPError, OSError) as e:
            logger.error("[PUBLISH] Upload of %s failed: %s", artifact_set.name, e)
            return f"Upload failed: {e}"

        artifact_set.published_to = target
        logger.info("[PUBLISH] %s → %s (%d file(s))", artifact_set.name, target, len(artifact_set.files))
        return None


def default_publisher() -> ArtifactPublisher:
    """HTTP when ARTIFACT_UPLOAD_URL is configured, local copy otherwise."""
    if ARTIFACT_UPLOAD_URL:
        return HttpArtifactPublisher()
    return LocalArtifactPublisher()
