"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Static deployment settings (constant for a given server/client pair):
    SERVER_ADDR            — Test network address of the server host (default: 10.3.1.10)
    CLIENT_ADDR            — Test network address of the client host (default: 10.3.1.11)
    LIBOS                  — Library selector passed to the driver (default: catnap)
    PIPELINE_REPOSITORY    — Repository identifier passed to the driver
    TEST_DELAY             — Settle time between sequential system tests (default: 2)
    DRIVER_COMMAND         — Program prefix for the test driver

Runtime settings:
    WORKSPACE_ROOT         — Where per-run working trees are created
    SOURCE_TREE            — Local tree copied into each stage when CHECKOUT_URL is unset
    CHECKOUT_URL           — Git URL cloned fresh for every stage (optional)
    ARTIFACT_DIR           — Local destination for published artifact bundles
    ARTIFACT_UPLOAD_URL    — Remote artifact store; switches to HTTP publishing when set
    ARTIFACT_UPLOAD_TOKEN  — Bearer token for the artifact store
    STAGE_TIMEOUT_SECONDS  — Max seconds a single driver invocation may run
    HOST_PROBE_ENABLED     — Check that both hosts accept TCP on the SSH port before stage 1
    SSH_HOME               — Home whose .ssh/ receives the key and config (default: passwd home of the current account)
    KEEP_WORKSPACE         — Keep per-run working trees after the run (default: false)
    PIPELINE_CONFIG        — Optional YAML pipeline definition overriding the defaults

Secrets are NOT read here. They go through a SecretsProvider
(see ci_pipeline/services/secrets_provider.py).

Stage Timeout Philosophy:
    A system-test campaign against two physical hosts is slow. The default
    mirrors the hosted-runner job limit (6 hours). The timeout exists only to
    reclaim the host pair from a hung driver.
"""
import os
from dotenv import load_dotenv

load_dotenv()

# Static deployment configuration
SERVER_ADDR = os.getenv("SERVER_ADDR", "10.3.1.10")
CLIENT_ADDR = os.getenv("CLIENT_ADDR", "10.3.1.11")
LIBOS = os.getenv("LIBOS", "catnap")
PIPELINE_REPOSITORY = os.getenv("PIPELINE_REPOSITORY", "demikernel/demikernel")
TEST_DELAY = int(os.getenv("TEST_DELAY", 2))
DRIVER_COMMAND = os.getenv("DRIVER_COMMAND", "python3 tools/demikernel_ci.py")

# Workspace layout
WORKSPACE_ROOT = os.getenv(
    "WORKSPACE_ROOT",
    os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))), "workspace"),
)
SOURCE_TREE = os.getenv("SOURCE_TREE", os.getcwd())
CHECKOUT_URL = os.getenv("CHECKOUT_URL", "")
SSH_HOME = os.getenv("SSH_HOME", "")
KEEP_WORKSPACE = os.getenv("KEEP_WORKSPACE", "false").lower() == "true"

# Artifacts
ARTIFACT_DIR = os.getenv("ARTIFACT_DIR", "artifacts")
ARTIFACT_UPLOAD_URL = os.getenv("ARTIFACT_UPLOAD_URL", "")
ARTIFACT_UPLOAD_TOKEN = os.getenv("ARTIFACT_UPLOAD_TOKEN", "")

# Execution timeouts (seconds)
STAGE_TIMEOUT_SECONDS = int(os.getenv("STAGE_TIMEOUT_SECONDS", 6 * 60 * 60))
TERMINATE_GRACE_SECONDS = float(os.getenv("TERMINATE_GRACE_SECONDS", 10))

# Host reachability precondition
HOST_PROBE_ENABLED = os.getenv("HOST_PROBE_ENABLED", "true").lower() == "true"
HOST_PROBE_TIMEOUT = float(os.getenv("HOST_PROBE_TIMEOUT", 10))

# Optional YAML pipeline definition
PIPELINE_CONFIG = os.getenv("PIPELINE_CONFIG", "")

# Logging
LOG_DIR = os.getenv("LOG_DIR", "logs")
