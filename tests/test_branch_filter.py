import pytest

from ci_pipeline.utils.branch_filter import branch_from_ref, is_trigger_branch, matches_pattern


@pytest.mark.parametrize("ref", [
    "main",
    "dev",
    "unstable",
    "bugfix-tcp-close",
    "enhancement-logging",
    "feature-xyz",
    "workaround-nic-reset",
    "refs/heads/main",
    "refs/heads/feature-xyz",
])
def test_trigger_branches(ref):
    assert is_trigger_branch(ref) is True


@pytest.mark.parametrize("ref", [
    "release-candidate",
    "refs/heads/release-candidate",
    "master",
    "feature",            # prefix alone, no dash
    "devel",              # exact names do not prefix-match
    "main2",
    "feature-x/y",        # "*" does not cross "/"
    "refs/tags/main",
    "refs/pull/12/merge",
    "",
])
def test_non_trigger_branches(ref):
    assert is_trigger_branch(ref) is False


def test_empty_suffix_matches_prefix_pattern():
    # Workflow filters let "*" match zero characters
    assert is_trigger_branch("feature-") is True


def test_custom_patterns():
    assert is_trigger_branch("release-1.2", ["release-*"]) is True
    assert is_trigger_branch("main", ["release-*"]) is False


def test_branch_from_ref():
    assert branch_from_ref("refs/heads/feature-a") == "feature-a"
    assert branch_from_ref("  main ") == "main"
    assert branch_from_ref("refs/tags/v1") is None
    assert branch_from_ref("refs/heads/") is None
    assert branch_from_ref(None) is None


def test_pattern_escapes_regex_characters():
    assert matches_pattern("fix.1", "fix.1") is True
    assert matches_pattern("fixx1", "fix.1") is False
