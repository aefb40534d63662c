"""Filesystem helpers for RepoPipeline."""

import logging
import os
import shutil

from rich.console import Console

from repopipeline.errors import PipelineError


class FileSystemService:
    """Encapsulates workspace directory and artifact side effects."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def ensure_dir(self, path: str):
        os.makedirs(path, exist_ok=True)

    def cleanup_dir(self, path: str):
        if os.path.exists(path):
            try:
                shutil.rmtree(path)
                self.logger.debug("Removed directory: %s", path)
            except Exception as exc:
                message = f"Warning: Could not remove {path}: {exc}"
                self.console.print(f"[yellow]{message}[/yellow]")
                self.logger.warning(message)

    def cleanup_file(self, path: str):
        if os.path.exists(path):
            try:
                os.remove(path)
            except OSError as exc:
                self.logger.warning("Could not remove %s: %s", path, exc)

    def copy_file(self, source: str, destination: str) -> str:
        try:
            os.makedirs(os.path.dirname(destination) or ".", exist_ok=True)
            shutil.copy2(source, destination)
        except OSError as exc:
            raise PipelineError(f"Failed to copy {source} to {destination}: {exc}") from exc
        self.logger.debug("Copied %s -> %s", source, destination)
        return destination

    def copy_tree(self, source: str, destination: str) -> str:
        try:
            shutil.copytree(source, destination, dirs_exist_ok=True)
        except (OSError, shutil.Error) as exc:
            raise PipelineError(f"Failed to copy {source} to {destination}: {exc}") from exc
        self.logger.debug("Copied tree %s -> %s", source, destination)
        return destination
