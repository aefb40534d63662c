"""Shared domain models for RepoPipeline."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from repopipeline.constants import (
    BUILD_MODE_SINGLE,
    BUILD_MODES,
    DEFAULT_BASE_IMAGE,
    DEFAULT_BASE_URL,
    DEFAULT_BUILD_COMMAND,
    DEFAULT_WORKSPACE,
)
from repopipeline.errors import PipelineError


@dataclass(frozen=True)
class PipelineConfig:
    """Typed run configuration, validated once before any stage starts."""

    repos: str
    image_name: str
    repo_owner: str = ""
    base_url: str = DEFAULT_BASE_URL
    fallback_branch: Optional[str] = None
    build_mode: str = BUILD_MODE_SINGLE
    run_static_analysis: bool = False
    analysis_url: Optional[str] = None
    analysis_token: Optional[str] = field(default=None, repr=False)
    fail_on_missing_branch: bool = False
    workspace: str = DEFAULT_WORKSPACE
    image_namespace: str = ""
    registry: str = ""
    registry_username: Optional[str] = None
    registry_password: Optional[str] = field(default=None, repr=False)
    base_image: str = DEFAULT_BASE_IMAGE
    dockerfile: Optional[str] = None
    build_command: str = DEFAULT_BUILD_COMMAND
    max_workers: Optional[int] = None
    command_timeout: Optional[float] = None
    manifest_file: Optional[str] = None

    @property
    def clone_base_url(self) -> str:
        return self.base_url.replace("{owner}", self.repo_owner).rstrip("/")

    @property
    def image_repository(self) -> str:
        parts = [self.registry.rstrip("/"), self.image_namespace.strip("/"), self.image_name]
        return "/".join(part for part in parts if part)

    def validate(self):
        problems: List[str] = []

        if not self.repos or not self.repos.strip():
            problems.append("`repos` must list at least one repository")
        if not self.image_name or not self.image_name.strip():
            problems.append("`image_name` is required")
        if self.build_mode not in BUILD_MODES:
            problems.append(
                f"`build_mode` must be one of {', '.join(BUILD_MODES)} (got '{self.build_mode}')"
            )
        if not self.base_url:
            problems.append("`base_url` is required")
        elif "{owner}" in self.base_url and not self.repo_owner:
            problems.append("`base_url` contains `{owner}` but `repo_owner` is empty")
        if self.max_workers is not None and self.max_workers < 1:
            problems.append("`max_workers` must be at least 1")
        if self.command_timeout is not None and self.command_timeout <= 0:
            problems.append("`command_timeout` must be positive")
        if self.run_static_analysis and not self.analysis_url:
            problems.append("`analysis_url` is required when static analysis is enabled")

        if problems:
            raise PipelineError("Invalid pipeline configuration: " + "; ".join(problems) + ".")


@dataclass(frozen=True)
class BranchDecision:
    """The effective branch of a run and whether it may be built."""

    branch: str
    source: str
    allowed: bool


@dataclass(frozen=True)
class RepoSpec:
    name: str
    clone_url: str


class BuildStatus(str, Enum):
    BUILT = "built"
    SKIPPED_MISSING_BRANCH = "skipped_missing_branch"
    FAILED = "failed"


@dataclass(frozen=True)
class BuildOutcome:
    """Result of one per-repository build task."""

    repo: str
    status: BuildStatus
    artifact_path: Optional[str] = None
    reason: Optional[str] = None
    checkout_dir: Optional[str] = None

    @classmethod
    def built(cls, repo: str, artifact_path: str, checkout_dir: str) -> "BuildOutcome":
        return cls(
            repo=repo,
            status=BuildStatus.BUILT,
            artifact_path=artifact_path,
            checkout_dir=checkout_dir,
        )

    @classmethod
    def skipped(cls, repo: str, reason: str) -> "BuildOutcome":
        return cls(repo=repo, status=BuildStatus.SKIPPED_MISSING_BRANCH, reason=reason)

    @classmethod
    def failed(cls, repo: str, reason: str, checkout_dir: Optional[str] = None) -> "BuildOutcome":
        return cls(repo=repo, status=BuildStatus.FAILED, reason=reason, checkout_dir=checkout_dir)

    @property
    def succeeded(self) -> bool:
        return self.status is BuildStatus.BUILT


@dataclass(frozen=True)
class RunContext:
    """Per-run values threaded through every stage after branch and repo resolution."""

    run_id: str
    branch: str
    repos: Tuple[RepoSpec, ...]
    workspace_dir: str
    checkouts_dir: str
    artifacts_dir: str
