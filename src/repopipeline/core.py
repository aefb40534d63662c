import logging
import os
import subprocess
import uuid
from typing import List, Optional

from rich.console import Console

from .constants import (
    ALLOWED_BRANCHES,
    ARTIFACTS_DIRNAME,
    CHECKOUTS_DIRNAME,
    EXIT_FAILURE,
    EXIT_NOT_BUILT,
    EXIT_SUCCESS,
)
from .errors import PipelineError
from .models import BranchDecision, BuildOutcome, PipelineConfig, RepoSpec, RunContext
from .services.branch_resolver import BranchResolver
from .services.build_task import PerRepoBuildTask
from .services.command_runner import CommandRunner
from .services.filesystem import FileSystemService
from .services.image_publisher import ImagePublisher
from .services.image_version import ImageVersionResolver
from .services.manifest import ManifestService
from .services.parallel_build import ParallelBuildCoordinator
from .services.repo_list import RepoListParser
from .services.static_analysis import StaticAnalysisService
from .services.toolchain import ToolchainService

console = Console()
logger = logging.getLogger("repopipeline")


class RepoPipeline:
    ALLOWED_BRANCHES = list(ALLOWED_BRANCHES)

    def __init__(
        self,
        config: PipelineConfig,
        webhook_ref: Optional[str] = None,
        scm_branch: Optional[str] = None,
    ):
        config.validate()
        self.config = config
        self.webhook_ref = webhook_ref
        self.scm_branch = scm_branch

        self.run_id = uuid.uuid4().hex[:10]
        self.workspace_dir = os.path.abspath(config.workspace)
        self.checkouts_dir = os.path.join(self.workspace_dir, CHECKOUTS_DIRNAME)
        self.artifacts_dir = os.path.join(self.workspace_dir, ARTIFACTS_DIRNAME)
        self.manifest_file = config.manifest_file or os.path.join(
            self.workspace_dir, "run-manifest.json"
        )
        self.run_context: Optional[RunContext] = None
        self.current_step_name: Optional[str] = None

        self.command_runner = CommandRunner(
            logger=logger,
            default_timeout=config.command_timeout,
            secrets=[config.registry_password, config.analysis_token],
        )
        self.manifest_service = ManifestService(manifest_file=self.manifest_file, logger=logger)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.branch_resolver = BranchResolver(logger=logger, allowed_branches=ALLOWED_BRANCHES)
        self.repo_list_parser = RepoListParser(logger=logger)
        self.toolchain_service = ToolchainService(logger=logger, console=console)
        self.image_version_resolver = ImageVersionResolver(logger=logger)
        self.image_publisher = ImagePublisher(logger=logger, console=console)
        self.static_analysis_service: Optional[StaticAnalysisService] = None
        if config.run_static_analysis:
            self.static_analysis_service = StaticAnalysisService(
                logger=logger,
                console=console,
                server_url=config.analysis_url,
                token=config.analysis_token,
                build_command=config.build_command,
            )

    def _build_manifest_metadata(self):
        return {
            "repos": self.config.repos,
            "build_mode": self.config.build_mode,
            "fail_on_missing_branch": self.config.fail_on_missing_branch,
            "run_static_analysis": self.config.run_static_analysis,
            "image_repository": self.config.image_repository,
            "workspace": self.workspace_dir,
        }

    def _run_step(self, name: str, callback, *args, **kwargs):
        self.manifest_service.step_started(name)
        self.current_step_name = name

        try:
            result = callback(*args, **kwargs)
        except KeyboardInterrupt:
            self.manifest_service.step_finished(name, "aborted", error="Operation cancelled by user.")
            raise
        except Exception as exc:
            self.manifest_service.step_finished(name, "failed", error=str(exc))
            raise

        self.manifest_service.step_finished(name, "success")
        self.current_step_name = None
        return result

    def _run_cmd(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        **kwargs,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(cmd, check=check, capture_output=capture_output, **kwargs)

    def resolve_branch(self) -> BranchDecision:
        decision = self.branch_resolver.resolve(
            webhook_ref=self.webhook_ref,
            scm_branch=self.scm_branch,
            fallback=self.config.fallback_branch,
        )
        self.manifest_service.set_branch(decision)
        return decision

    def parse_repositories(self) -> List[RepoSpec]:
        return self.repo_list_parser.parse(self.config.repos, self.config.clone_base_url)

    def validate_toolchain(self):
        self.toolchain_service.validate_environment(self.config.build_command, self._run_cmd)

    def prepare_workspace(self):
        """Clears what a previous run left behind and recreates the workspace layout."""
        logger.info("Preparing workspace %s", self.workspace_dir)
        self.filesystem_service.cleanup_dir(self.checkouts_dir)
        self.filesystem_service.cleanup_dir(self.artifacts_dir)
        self.filesystem_service.cleanup_file(
            os.path.join(self.workspace_dir, ImagePublisher.DOCKERFILE_NAME)
        )
        self.filesystem_service.cleanup_file(
            os.path.join(self.workspace_dir, ImagePublisher.DOCKERIGNORE_NAME)
        )

        self.filesystem_service.ensure_dir(self.checkouts_dir)
        self.filesystem_service.ensure_dir(self.artifacts_dir)

    def _build_run_context(self, branch: str, repos: List[RepoSpec]) -> RunContext:
        return RunContext(
            run_id=self.run_id,
            branch=branch,
            repos=tuple(repos),
            workspace_dir=self.workspace_dir,
            checkouts_dir=self.checkouts_dir,
            artifacts_dir=self.artifacts_dir,
        )

    def _create_task(self, repo: RepoSpec) -> PerRepoBuildTask:
        return PerRepoBuildTask(
            repo=repo,
            run_context=self.run_context,
            run_cmd=self._run_cmd,
            filesystem_service=self.filesystem_service,
            logger=logger,
            build_command=self.config.build_command,
            build_mode=self.config.build_mode,
        )

    def build_repositories(self) -> List[BuildOutcome]:
        coordinator = ParallelBuildCoordinator(
            logger=logger,
            console=console,
            task_factory=self._create_task,
            max_workers=self.config.max_workers,
            fail_fast=self.config.fail_on_missing_branch,
        )
        return coordinator.build_all(
            self.run_context.repos,
            on_outcome=self.manifest_service.record_outcome,
        )

    def run_static_analysis(self, outcomes: List[BuildOutcome]):
        if self.static_analysis_service is None:
            return []
        return self.static_analysis_service.submit(outcomes, self._run_cmd)

    def resolve_image_version(self) -> str:
        return self.image_version_resolver.resolve(self.config.image_repository, self._run_cmd)

    def publish_image(self, tag: str) -> str:
        return self.image_publisher.publish(
            repository=self.config.image_repository,
            tag=tag,
            workspace_dir=self.workspace_dir,
            run_cmd=self._run_cmd,
            username=self.config.registry_username,
            password=self.config.registry_password,
            registry=self.config.registry or None,
            base_image=self.config.base_image,
            dockerfile=self.config.dockerfile,
        )

    def run(self) -> int:
        exit_code = EXIT_FAILURE
        manifest_status = "failed"
        manifest_error: Optional[str] = None

        try:
            logger.info("Starting RepoPipeline run %s...", self.run_id)
            self.manifest_service.start_run(
                run_id=self.run_id,
                metadata=self._build_manifest_metadata(),
            )

            decision = self._run_step("resolve_branch", self.resolve_branch)
            if not decision.allowed:
                console.print(
                    f"[yellow]Branch '{decision.branch or '<none>'}' is not allowed to build. "
                    "Marking run as not built.[/yellow]"
                )
                logger.info("Run %s not built: branch gate closed.", self.run_id)
                manifest_status = "not_built"
                exit_code = EXIT_NOT_BUILT
                return exit_code

            repos = self._run_step("parse_repositories", self.parse_repositories)
            self.run_context = self._build_run_context(decision.branch, repos)
            console.print(
                f"[bold blue]Building {len(repos)} repositories on branch {decision.branch}[/bold blue]"
            )

            self._run_step("validate_toolchain", self.validate_toolchain)
            self._run_step("prepare_workspace", self.prepare_workspace)

            outcomes = self._run_step("build_repositories", self.build_repositories)
            if not any(outcome.succeeded for outcome in outcomes):
                logger.warning("No repository produced an artifact; the image will contain none.")

            if self.config.run_static_analysis:
                self._run_step("static_analysis", self.run_static_analysis, outcomes)

            tag = self._run_step("resolve_image_version", self.resolve_image_version)
            self.manifest_service.set_image(self.config.image_repository, tag)

            image = self._run_step("publish_image", self.publish_image, tag)
            self.manifest_service.set_image(self.config.image_repository, tag, reference=image)

            manifest_status = "success"
            manifest_error = None
            exit_code = EXIT_SUCCESS
            return exit_code

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            manifest_status = "aborted"
            manifest_error = "Operation cancelled by user."
            exit_code = EXIT_FAILURE
            return exit_code
        except PipelineError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            manifest_status = "failed"
            manifest_error = str(exc)
            exit_code = EXIT_FAILURE
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            manifest_status = "failed"
            manifest_error = str(exc)
            exit_code = EXIT_FAILURE
            return exit_code
        finally:
            self.manifest_service.finalize(manifest_status, error=manifest_error)
            failed_step = f" at step '{self.current_step_name}'" if self.current_step_name else ""
            logger.info(
                "Run %s finished with status '%s'%s. Manifest: %s",
                self.run_id,
                manifest_status,
                failed_step if manifest_status == "failed" else "",
                self.manifest_file,
            )
