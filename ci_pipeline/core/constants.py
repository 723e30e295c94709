"""
Constants
Centralised storage for trigger rules, artifact patterns, and secret names.
"""

# Branch patterns that create a PipelineRun on push. "*" never crosses "/".
TRIGGER_BRANCH_PATTERNS = (
    "bugfix-*",
    "enhancement-*",
    "feature-*",
    "workaround-*",
    "dev",
    "unstable",
    "main",
)

# Diagnostic files swept up after every stage
ARTIFACT_SUFFIXES = (".stdout.txt", ".stderr.txt")
ARTIFACT_NAME_TEMPLATE = "{stage}-pipeline-logs"

# Names of the values read from the secret store
SECRET_SERVER_HOSTNAME = "CATNAP_HOSTNAME_A"
SECRET_CLIENT_HOSTNAME = "CATNAP_HOSTNAME_B"
SECRET_SSH_KEY = "SSHKEY"
SECRET_SSH_USERNAME = "USERNAME"
SECRET_SSH_PORT = "PORTNUM"

# Shared secret for push webhook signatures (server mode only)
SECRET_WEBHOOK = "WEBHOOK_SECRET"

REQUIRED_SECRETS = (
    SECRET_SERVER_HOSTNAME,
    SECRET_CLIENT_HOSTNAME,
    SECRET_SSH_KEY,
    SECRET_SSH_USERNAME,
    SECRET_SSH_PORT,
)

# "--test-system" selector meaning every system-test suite
ALL_SYSTEM_TESTS = "all"

# Branch references are passed to the driver relative to this remote
REMOTE_NAME = "origin"
