"""Shared constants for RepoPipeline."""

import re

ALLOWED_BRANCHES = ("main", "master", "uat", "feature/dev", "feature/dc")
WEBHOOK_REF_PREFIX = "refs/heads/"
SCM_REMOTE_PREFIX = "origin/"

REPO_NAME_PATTERN = re.compile(r"[A-Za-z0-9._-]+")
IMAGE_TAG_PATTERN = re.compile(r"v(\d+)")

BUILD_MODE_SINGLE = "single"
BUILD_MODE_BUNDLE = "bundle"
BUILD_MODES = (BUILD_MODE_SINGLE, BUILD_MODE_BUNDLE)

ARTIFACT_PATTERNS = ("*.jar", "*.war")
EXCLUDED_ARTIFACT_MARKERS = ("sources", "javadoc")

DEFAULT_BASE_URL = "https://github.com/{owner}"
DEFAULT_BASE_IMAGE = "eclipse-temurin:17-jre"
DEFAULT_BUILD_COMMAND = "mvn"
DEFAULT_WORKSPACE = "workspace"
DEFAULT_CONFIG_FILE = ".repopipeline.yml"

CHECKOUTS_DIRNAME = "checkouts"
ARTIFACTS_DIRNAME = "artifacts"
BUNDLE_LIB_DIRNAME = "lib"

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_NOT_BUILT = 3
