"""Next image tag computation for RepoPipeline."""

from typing import Callable, Iterable, List

from repopipeline.constants import IMAGE_TAG_PATTERN


class ImageVersionResolver:
    """Computes the next ``v<N>`` tag from the tags already present for an image.

    Two runs resolving concurrently can compute the same tag; nothing here
    locks the image namespace.
    """

    def __init__(self, logger):
        self.logger = logger

    def list_tags(self, repository: str, run_cmd: Callable) -> List[str]:
        result = run_cmd(
            ["docker", "images", repository, "--format", "{{.Tag}}"],
            capture_output=True,
        )
        return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]

    @staticmethod
    def next_version(tags: Iterable[str]) -> str:
        numbers = []
        for tag in tags:
            match = IMAGE_TAG_PATTERN.fullmatch(tag.strip())
            if match:
                numbers.append(int(match.group(1)))

        if not numbers:
            return "v1"
        return f"v{max(numbers) + 1}"

    def resolve(self, repository: str, run_cmd: Callable) -> str:
        tags = self.list_tags(repository, run_cmd)
        version = self.next_version(tags)
        self.logger.info(
            "Existing tags for %s: %s. Next version: %s",
            repository,
            ", ".join(tags) or "<none>",
            version,
        )
        return version
