"""Per-repository checkout, build and artifact staging."""

import fnmatch
import os
from typing import Callable, Iterable, List, Optional

from repopipeline.constants import (
    ARTIFACT_PATTERNS,
    BUILD_MODE_BUNDLE,
    BUILD_MODE_SINGLE,
    BUNDLE_LIB_DIRNAME,
    DEFAULT_BUILD_COMMAND,
    EXCLUDED_ARTIFACT_MARKERS,
)
from repopipeline.errors import ArtifactNotFoundError, CheckoutError, PipelineError
from repopipeline.errors_catalog import actionable_error
from repopipeline.models import BuildOutcome, RepoSpec, RunContext


def _last_lines(text: Optional[str], count: int = 1) -> str:
    lines = [line for line in (text or "").strip().splitlines() if line.strip()]
    return "\n".join(lines[-count:])


class PerRepoBuildTask:
    """Checks out one repository at the effective branch, builds it and stages its artifact.

    ``run`` never raises for pipeline errors: checkout problems become a
    skipped outcome and build or artifact problems become a failed outcome.
    Whether those outcomes stop the whole run is decided by the coordinator.
    """

    BUILD_OUTPUT_DIR = "target"

    def __init__(
        self,
        repo: RepoSpec,
        run_context: RunContext,
        run_cmd: Callable,
        filesystem_service,
        logger,
        build_command: str = DEFAULT_BUILD_COMMAND,
        build_mode: str = BUILD_MODE_SINGLE,
    ):
        self.repo = repo
        self.run_context = run_context
        self.run_cmd = run_cmd
        self.filesystem_service = filesystem_service
        self.logger = logger
        self.build_command = build_command
        self.build_mode = build_mode

    @property
    def checkout_dir(self) -> str:
        return os.path.join(self.run_context.checkouts_dir, self.repo.name)

    def ensure_checkout_dir_is_contained(self):
        checkouts_dir = os.path.realpath(self.run_context.checkouts_dir)
        target = os.path.realpath(self.checkout_dir)
        if os.path.dirname(target) != checkouts_dir or target == checkouts_dir:
            raise PipelineError(
                actionable_error(
                    "unsafe_checkout_path",
                    repo=self.repo.name,
                    checkouts=self.run_context.checkouts_dir,
                )
            )

    def checkout_command(self) -> List[str]:
        return [
            "git",
            "clone",
            "--depth",
            "1",
            "--branch",
            self.run_context.branch,
            "--single-branch",
            self.repo.clone_url,
            self.checkout_dir,
        ]

    def build_commandline(self) -> List[str]:
        cmd = [self.build_command, "-B", "-DskipTests", "package"]
        if self.build_mode == BUILD_MODE_BUNDLE:
            cmd += [
                "dependency:copy-dependencies",
                f"-DoutputDirectory={self.BUILD_OUTPUT_DIR}/{BUNDLE_LIB_DIRNAME}",
                "-DincludeScope=runtime",
            ]
        return cmd

    def checkout(self) -> str:
        self.filesystem_service.cleanup_dir(self.checkout_dir)
        self.logger.info(
            "[%s] Checking out branch '%s' from %s",
            self.repo.name,
            self.run_context.branch,
            self.repo.clone_url,
        )

        result = self.run_cmd(self.checkout_command(), check=False, capture_output=True)
        if result.returncode != 0:
            message = actionable_error(
                "branch_checkout_failed",
                branch=self.run_context.branch,
                repo=self.repo.name,
                url=self.repo.clone_url,
            )
            details = _last_lines(result.stderr)
            if details:
                message = f"{message} Details: {details}"
            raise CheckoutError(message)

        return self.checkout_dir

    def build(self, checkout_dir: str):
        cmd = self.build_commandline()
        self.logger.info("[%s] Building: %s", self.repo.name, " ".join(cmd))

        result = self.run_cmd(cmd, check=False, capture_output=True, cwd=checkout_dir)
        if result.returncode != 0:
            message = actionable_error("build_failed", repo=self.repo.name, command=" ".join(cmd))
            # Maven reports errors on stdout.
            details = _last_lines(result.stderr, count=5) or _last_lines(result.stdout, count=5)
            if details:
                message = f"{message}\n{details}"
            raise PipelineError(message)

    def find_candidates(self, checkout_dir: str) -> List[str]:
        output_dir = os.path.join(checkout_dir, self.BUILD_OUTPUT_DIR)
        if not os.path.isdir(output_dir):
            return []

        return sorted(
            name
            for name in os.listdir(output_dir)
            if os.path.isfile(os.path.join(output_dir, name))
            and any(fnmatch.fnmatch(name, pattern) for pattern in ARTIFACT_PATTERNS)
        )

    @staticmethod
    def select_artifact(candidates: Iterable[str]) -> Optional[str]:
        """Returns the first candidate by name that is not a sources or javadoc archive."""
        for name in sorted(candidates):
            lowered = name.lower()
            if any(marker in lowered for marker in EXCLUDED_ARTIFACT_MARKERS):
                continue
            return name
        return None

    def stage_artifact(self, checkout_dir: str, artifact_name: str) -> str:
        source = os.path.join(checkout_dir, self.BUILD_OUTPUT_DIR, artifact_name)
        extension = os.path.splitext(artifact_name)[1]
        destination = os.path.join(self.run_context.artifacts_dir, f"{self.repo.name}{extension}")
        self.filesystem_service.copy_file(source, destination)
        self.logger.info("[%s] Staged %s as %s", self.repo.name, artifact_name, destination)
        return destination

    def stage_dependencies(self, checkout_dir: str):
        lib_dir = os.path.join(checkout_dir, self.BUILD_OUTPUT_DIR, BUNDLE_LIB_DIRNAME)
        if not os.path.isdir(lib_dir):
            self.logger.warning(
                "[%s] Bundle mode: no runtime dependencies in %s", self.repo.name, lib_dir
            )
            return

        destination = os.path.join(
            self.run_context.artifacts_dir, BUNDLE_LIB_DIRNAME, self.repo.name
        )
        self.filesystem_service.copy_tree(lib_dir, destination)

    def run(self) -> BuildOutcome:
        try:
            self.ensure_checkout_dir_is_contained()
        except PipelineError as exc:
            self.logger.error("[%s] %s", self.repo.name, exc)
            return BuildOutcome.failed(self.repo.name, str(exc))

        try:
            checkout_dir = self.checkout()
        except PipelineError as exc:
            self.logger.warning("[%s] Skipping repository: %s", self.repo.name, exc)
            return BuildOutcome.skipped(self.repo.name, str(exc))

        try:
            self.build(checkout_dir)

            candidates = self.find_candidates(checkout_dir)
            artifact_name = self.select_artifact(candidates)
            if artifact_name is None:
                raise ArtifactNotFoundError(
                    actionable_error(
                        "artifact_not_found",
                        repo=self.repo.name,
                        path=os.path.join(checkout_dir, self.BUILD_OUTPUT_DIR),
                    )
                    + f" Candidates: {', '.join(candidates) or 'none'}."
                )

            artifact_path = self.stage_artifact(checkout_dir, artifact_name)
            if self.build_mode == BUILD_MODE_BUNDLE:
                self.stage_dependencies(checkout_dir)
        except PipelineError as exc:
            self.logger.error("[%s] %s", self.repo.name, exc)
            return BuildOutcome.failed(self.repo.name, str(exc), checkout_dir=checkout_dir)

        return BuildOutcome.built(self.repo.name, artifact_path, checkout_dir)
