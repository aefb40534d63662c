"""Repository list parsing for RepoPipeline."""

from typing import List, Optional

from repopipeline.constants import REPO_NAME_PATTERN
from repopipeline.errors import PipelineError
from repopipeline.errors_catalog import actionable_error
from repopipeline.models import RepoSpec


class RepoListParser:
    """Turns a comma-delimited repository list into validated RepoSpec entries."""

    def __init__(self, logger):
        self.logger = logger

    def split(self, raw: Optional[str]) -> List[str]:
        names: List[str] = []
        seen = set()
        for item in (raw or "").split(","):
            name = item.strip()
            if not name or name in seen:
                continue
            seen.add(name)
            names.append(name)
        return names

    def invalid_names(self, names: List[str]) -> List[str]:
        return [
            name
            for name in names
            if not REPO_NAME_PATTERN.fullmatch(name) or not name.strip(".")
        ]

    def parse(self, raw: Optional[str], base_url: str) -> List[RepoSpec]:
        names = self.split(raw)

        invalid = self.invalid_names(names)
        if invalid:
            listing = ", ".join(f"'{name}'" for name in invalid)
            raise PipelineError(actionable_error("invalid_repo_names", names=listing))

        base = base_url.rstrip("/")
        repos = [RepoSpec(name=name, clone_url=f"{base}/{name}.git") for name in names]

        if repos:
            self.logger.info(
                "Resolved %s repositories: %s",
                len(repos),
                ", ".join(repo.name for repo in repos),
            )
        return repos
