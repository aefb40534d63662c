"""Subprocess execution service for RepoPipeline."""

import subprocess
from typing import Dict, Iterable, List, Optional

from repopipeline.errors import PipelineError

REDACTED = "****"


class CommandRunner:
    """Runs external tools from argument lists with consistent error handling.

    Values passed as ``secrets`` never reach the log: they are masked in the
    logged command line, in captured output and in raised error messages.
    """

    def __init__(
        self,
        logger,
        default_timeout: Optional[float] = None,
        secrets: Optional[Iterable[Optional[str]]] = None,
    ):
        self.logger = logger
        self.default_timeout = default_timeout
        self.secrets = [value for value in (secrets or []) if value]

    def redact(self, text: str) -> str:
        for value in self.secrets:
            text = text.replace(value, REDACTED)
        return text

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        cwd: Optional[str] = None,
        input_text: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = self.redact(" ".join(cmd))
        if cwd:
            self.logger.debug("Executing in %s: %s", cwd, cmd_str)
        else:
            self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                timeout=effective_timeout,
                cwd=cwd,
                input=input_text,
                env=env,
            )
        except FileNotFoundError as exc:
            raise PipelineError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise PipelineError(f"Command timed out after {effective_timeout}s: {cmd_str}") from exc
        except Exception as exc:
            raise PipelineError(
                f"Failed to execute command: {cmd_str}. {self.redact(str(exc))}"
            ) from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", self.redact(result.stdout.strip()))

        if result.returncode == 0:
            return result

        stderr = self.redact((result.stderr or "").strip()) if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise PipelineError(message)

        self.logger.warning(message)
        return result
