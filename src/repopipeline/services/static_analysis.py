"""Fire-and-forget static analysis submission."""

import os
from typing import Callable, Iterable, List, Optional

import requests

from repopipeline.constants import DEFAULT_BUILD_COMMAND


class StaticAnalysisService:
    """Submits built repositories to a SonarQube-compatible analysis server.

    Nothing in this stage can fail the run: an unreachable server skips the
    stage and a failed submission is only logged.
    """

    STATUS_ENDPOINT = "/api/system/status"

    def __init__(
        self,
        logger,
        console,
        server_url: str,
        token: Optional[str] = None,
        build_command: str = DEFAULT_BUILD_COMMAND,
        requests_module=requests,
        timeout_seconds: float = 10.0,
    ):
        self.logger = logger
        self.console = console
        self.server_url = server_url.rstrip("/")
        self.token = token
        self.build_command = build_command
        self.requests = requests_module
        self.timeout_seconds = timeout_seconds

    def is_reachable(self) -> bool:
        url = f"{self.server_url}{self.STATUS_ENDPOINT}"
        try:
            with self.requests.get(url, timeout=self.timeout_seconds) as response:
                response.raise_for_status()
        except self.requests.RequestException as exc:
            self.logger.warning("Static analysis server is not reachable at %s: %s", url, exc)
            return False
        return True

    def analysis_command(self, repo_name: str) -> List[str]:
        return [
            self.build_command,
            "-B",
            "sonar:sonar",
            f"-Dsonar.host.url={self.server_url}",
            f"-Dsonar.projectKey={repo_name}",
        ]

    def analysis_env(self):
        env = dict(os.environ)
        if self.token:
            env["SONAR_TOKEN"] = self.token
        return env

    def submit(self, outcomes: Iterable, run_cmd: Callable) -> List[str]:
        built = [outcome for outcome in outcomes if outcome.succeeded and outcome.checkout_dir]
        if not built:
            self.logger.info("No built repositories to analyse.")
            return []

        self.console.print("[blue]Submitting static analysis...[/blue]")
        if not self.is_reachable():
            self.console.print("[yellow]Static analysis skipped: server unreachable.[/yellow]")
            return []

        submitted: List[str] = []
        for outcome in built:
            result = run_cmd(
                self.analysis_command(outcome.repo),
                check=False,
                capture_output=True,
                cwd=outcome.checkout_dir,
                env=self.analysis_env(),
            )
            if result.returncode == 0:
                submitted.append(outcome.repo)
                self.logger.info("Static analysis submitted for %s", outcome.repo)
            else:
                self.logger.warning(
                    "Static analysis submission failed for %s (exit %s)",
                    outcome.repo,
                    result.returncode,
                )
        return submitted
