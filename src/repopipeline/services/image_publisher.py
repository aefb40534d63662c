"""Container image build and publication for RepoPipeline."""

import os
from typing import Callable, List, Optional

from repopipeline.constants import ARTIFACTS_DIRNAME, CHECKOUTS_DIRNAME
from repopipeline.errors import PipelineError
from repopipeline.errors_catalog import actionable_error


class ImagePublisher:
    """Builds one image from the staged artifacts, then tags and pushes it.

    The registry password is only ever written to ``docker login`` on stdin.
    Once a login succeeded, ``docker logout`` runs whether the push worked or not.
    """

    DOCKERFILE_NAME = "Dockerfile"
    DOCKERIGNORE_NAME = ".dockerignore"
    APP_DIR = "/opt/app"

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def build_dockerfile(self, base_image: str) -> str:
        return f"""
FROM {base_image}
WORKDIR {self.APP_DIR}
COPY {ARTIFACTS_DIRNAME}/ {self.APP_DIR}/
""".strip()

    def write_build_context(self, workspace_dir: str, base_image: str) -> str:
        dockerfile_path = os.path.join(workspace_dir, self.DOCKERFILE_NAME)
        with open(dockerfile_path, "w", encoding="utf-8", newline="\n") as file_obj:
            file_obj.write(self.build_dockerfile(base_image) + "\n")

        self.write_dockerignore(workspace_dir)
        return dockerfile_path

    def write_dockerignore(self, workspace_dir: str) -> str:
        dockerignore_path = os.path.join(workspace_dir, self.DOCKERIGNORE_NAME)
        with open(dockerignore_path, "w", encoding="utf-8", newline="\n") as file_obj:
            file_obj.write(f"{CHECKOUTS_DIRNAME}/\n*.json\n")
        return dockerignore_path

    @staticmethod
    def _registry_args(registry: Optional[str]) -> List[str]:
        return [registry] if registry else []

    def publish(
        self,
        repository: str,
        tag: str,
        workspace_dir: str,
        run_cmd: Callable,
        username: Optional[str],
        password: Optional[str],
        registry: Optional[str] = None,
        base_image: str = "",
        dockerfile: Optional[str] = None,
    ) -> str:
        if not username or not password:
            raise PipelineError(actionable_error("missing_registry_credentials"))

        image = f"{repository}:{tag}"
        registry_label = registry or "Docker Hub"

        if dockerfile:
            dockerfile_path = dockerfile
            self.write_dockerignore(workspace_dir)
        else:
            dockerfile_path = self.write_build_context(workspace_dir, base_image)
        self.console.print(f"[blue]Building image {image}...[/blue]")
        try:
            run_cmd(["docker", "build", "-f", dockerfile_path, "-t", image, workspace_dir])
        except PipelineError as exc:
            raise PipelineError(
                f"{actionable_error('image_build_failed', image=image, context=workspace_dir)}\n{exc}"
            ) from exc

        self.logger.info("Logging in to %s as %s", registry_label, username)
        try:
            run_cmd(
                ["docker", "login"]
                + self._registry_args(registry)
                + ["--username", username, "--password-stdin"],
                capture_output=True,
                input_text=password,
            )
        except PipelineError as exc:
            raise PipelineError(
                f"{actionable_error('registry_login_failed', registry=registry_label)}\n{exc}"
            ) from exc

        try:
            self.console.print(f"[blue]Pushing image {image}...[/blue]")
            try:
                run_cmd(["docker", "push", image])
            except PipelineError as exc:
                raise PipelineError(
                    f"{actionable_error('image_push_failed', image=image)}\n{exc}"
                ) from exc
        finally:
            run_cmd(
                ["docker", "logout"] + self._registry_args(registry),
                check=False,
                capture_output=True,
            )
            self.logger.info("Logged out from %s", registry_label)

        self.console.print(f"[green]Published {image}[/green]")
        self.logger.info("Published image %s", image)
        return image
