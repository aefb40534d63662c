"""External toolchain checks for RepoPipeline."""

from typing import Callable, List


class ToolchainService:
    """Verifies that the version-control, build and container tools are callable."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def required_commands(self, build_command: str) -> List[List[str]]:
        return [
            ["git", "--version"],
            [build_command, "--version"],
            ["docker", "--version"],
        ]

    def validate_environment(self, build_command: str, run_cmd: Callable):
        self.console.print("[blue]Validating build toolchain...[/blue]")
        for cmd in self.required_commands(build_command):
            result = run_cmd(cmd, capture_output=True)
            version_line = (result.stdout or "").strip().splitlines()[:1]
            self.logger.debug("%s: %s", cmd[0], version_line[0] if version_line else "available")
        self.console.print("[green]Toolchain is available.[/green]")
