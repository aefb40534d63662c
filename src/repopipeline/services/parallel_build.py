"""Concurrent fan-out of per-repository build tasks."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional, Sequence

from repopipeline.errors import PipelineError
from repopipeline.errors_catalog import actionable_error
from repopipeline.models import BuildOutcome, BuildStatus, RepoSpec


class ParallelBuildCoordinator:
    """Runs one build task per repository on a thread pool and collects every outcome.

    Tasks are independent: each writes to its own checkout directory and its
    own artifact name. Without fail-fast every task runs to completion and
    exactly one outcome per repository is returned, in input order. With
    fail-fast the first outcome that is not ``built`` cancels tasks that have
    not started yet and raises; tasks already running are left to finish.
    """

    def __init__(
        self,
        logger,
        console,
        task_factory: Callable,
        max_workers: Optional[int] = None,
        fail_fast: bool = False,
    ):
        self.logger = logger
        self.console = console
        self.task_factory = task_factory
        self.max_workers = max_workers
        self.fail_fast = fail_fast

    def build_all(
        self,
        repos: Sequence[RepoSpec],
        on_outcome: Optional[Callable[[BuildOutcome], None]] = None,
    ) -> List[BuildOutcome]:
        total = len(repos)
        if total == 0:
            raise PipelineError(actionable_error("empty_repo_list"))

        self.console.print(f"[blue]Building {total} repositories...[/blue]")
        self.logger.info(
            "Starting parallel build of %s repositories (workers: %s, fail-fast: %s)",
            total,
            self.max_workers or "default",
            self.fail_fast,
        )

        outcomes: Dict[str, BuildOutcome] = {}

        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="repo-build"
        ) as executor:
            future_to_repo = {
                executor.submit(self.task_factory(repo).run): repo for repo in repos
            }

            for future in as_completed(future_to_repo):
                repo = future_to_repo[future]
                try:
                    outcome = future.result()
                except Exception as exc:
                    self.logger.exception("Unexpected error while building %s", repo.name)
                    outcome = BuildOutcome.failed(repo.name, f"Unexpected error: {exc}")

                outcomes[repo.name] = outcome
                self._report(outcome)
                if on_outcome:
                    on_outcome(outcome)

                if self.fail_fast and not outcome.succeeded:
                    for pending in future_to_repo:
                        pending.cancel()
                    raise PipelineError(
                        actionable_error(
                            "fail_fast_abort",
                            repo=outcome.repo,
                            status=outcome.status.value,
                        )
                    )

        built = sum(1 for outcome in outcomes.values() if outcome.succeeded)
        self.logger.info(
            "Parallel build finished: %s built, %s not built, %s total",
            built,
            total - built,
            total,
        )
        return [outcomes[repo.name] for repo in repos]

    def _report(self, outcome: BuildOutcome):
        if outcome.status is BuildStatus.BUILT:
            self.console.print(f"[green]Built {outcome.repo}[/green]")
            self.logger.info("Built %s -> %s", outcome.repo, outcome.artifact_path)
        elif outcome.status is BuildStatus.SKIPPED_MISSING_BRANCH:
            self.console.print(f"[yellow]Skipped {outcome.repo}[/yellow]")
            self.logger.warning("Skipped %s: %s", outcome.repo, outcome.reason)
        else:
            self.console.print(f"[red]Failed {outcome.repo}[/red]")
            self.logger.error("Failed %s: %s", outcome.repo, outcome.reason)
