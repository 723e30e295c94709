"""
Branch Filter
=============
Decides whether a pushed revision reference creates a PipelineRun.

Pattern rules (same as workflow push filters):
    - "*" matches any run of characters except "/"
    - a pattern without "*" must match the whole branch name
    - "refs/heads/" is stripped before matching; tags never match
"""
import re
from functools import lru_cache
from typing import Iterable, Optional, Pattern

from ci_pipeline.core.constants import TRIGGER_BRANCH_PATTERNS

_HEADS_PREFIX = "refs/heads/"


def branch_from_ref(ref: str) -> Optional[str]:
    """
    Normalise a ref to a bare branch name.

    Returns None for refs that are not branches (tags, pull refs, empty).
    """
    ref = (ref or "").strip()
    if not ref:
        return None
    if ref.startswith(_HEADS_PREFIX):
        return ref[len(_HEADS_PREFIX):] or None
    if ref.startswith("refs/"):
        return None
    return ref


@lru_cache(maxsize=64)
def _compile(pattern: str) -> Pattern[str]:
    parts = [re.escape(chunk) for chunk in pattern.split("*")]
    return re.compile("^" + "[^/]*".join(parts) + "$")


def matches_pattern(branch: str, pattern: str) -> bool:
    return bool(_compile(pattern).match(branch))


def is_trigger_branch(ref: str, patterns: Iterable[str] = TRIGGER_BRANCH_PATTERNS) -> bool:
    """True if a push to ``ref`` should start the pipeline."""
    branch = branch_from_ref(ref)
    if branch is None:
        return False
    return any(matches_pattern(branch, p) for p in patterns)
