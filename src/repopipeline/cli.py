import json
import logging
import os

import click
from rich.logging import RichHandler

from .constants import (
    BUILD_MODE_SINGLE,
    BUILD_MODES,
    DEFAULT_BASE_IMAGE,
    DEFAULT_BASE_URL,
    DEFAULT_BUILD_COMMAND,
    DEFAULT_CONFIG_FILE,
    DEFAULT_WORKSPACE,
)
from .core import PipelineError, RepoPipeline
from .models import PipelineConfig
from .services.branch_resolver import BranchResolver
from .services.config_loader import ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _optional(value, cast):
    return cast(value) if value is not None else None


def _read_webhook_payload(path):
    try:
        with open(path, "r", encoding="utf-8") as file_obj:
            payload = json.load(file_obj)
    except (OSError, json.JSONDecodeError) as exc:
        raise click.ClickException(f"Could not read webhook payload '{path}': {exc}") from exc
    return BranchResolver.ref_from_payload(payload)


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option("--repos", required=False, help="Comma-separated repository names to build.")
@click.option("--repo-owner", required=False, help="Repository owner or organisation.")
@click.option(
    "--base-url",
    required=False,
    help=f"Clone URL base; `{{owner}}` is replaced by the owner (default: {DEFAULT_BASE_URL}).",
)
@click.option(
    "--branch",
    required=False,
    type=click.Choice(RepoPipeline.ALLOWED_BRANCHES),
    help="Fallback branch, used when no webhook or SCM branch is available.",
)
@click.option(
    "--webhook-ref",
    required=False,
    envvar="WEBHOOK_REF",
    help="Branch reference from a push webhook (e.g. refs/heads/main).",
)
@click.option(
    "--webhook-payload",
    required=False,
    type=click.Path(exists=True, dir_okay=False),
    help="Push webhook JSON payload; its `ref` is used when --webhook-ref is absent.",
)
@click.option(
    "--scm-branch",
    required=False,
    envvar="GIT_BRANCH",
    help="Branch reported by the SCM checkout (e.g. origin/main).",
)
@click.option(
    "--build-mode",
    required=False,
    type=click.Choice(BUILD_MODES),
    help="Packaging strategy: `single` stages one artifact per repo, "
    "`bundle` also stages runtime dependencies.",
)
@click.option(
    "--run-static-analysis",
    is_flag=True,
    default=None,
    help="Submit built repositories to the static analysis server.",
)
@click.option("--analysis-url", required=False, help="Static analysis server URL.")
@click.option(
    "--analysis-token",
    required=False,
    envvar="SONAR_TOKEN",
    help="Static analysis server token.",
)
@click.option(
    "--fail-on-missing-branch",
    is_flag=True,
    default=None,
    help="Fail the whole run when any repository cannot be checked out or built.",
)
@click.option(
    "--workspace",
    required=False,
    type=click.Path(file_okay=False),
    help=f"Working directory for checkouts and artifacts (default: {DEFAULT_WORKSPACE}).",
)
@click.option("--image-name", required=False, help="Name of the image to publish.")
@click.option("--image-namespace", required=False, help="Registry namespace of the image.")
@click.option("--registry", required=False, help="Registry host. Defaults to Docker Hub.")
@click.option(
    "--registry-username",
    required=False,
    envvar="REGISTRY_USERNAME",
    help="Registry user name.",
)
@click.option(
    "--registry-password",
    required=False,
    envvar="REGISTRY_PASSWORD",
    help="Registry password or token.",
)
@click.option(
    "--base-image",
    required=False,
    help=f"Base image of the generated Dockerfile (default: {DEFAULT_BASE_IMAGE}).",
)
@click.option(
    "--dockerfile",
    required=False,
    type=click.Path(dir_okay=False),
    help="Custom Dockerfile. The workspace is used as build context.",
)
@click.option(
    "--build-command",
    required=False,
    help=f"Build tool executable (default: {DEFAULT_BUILD_COMMAND}).",
)
@click.option(
    "--max-workers",
    required=False,
    type=int,
    default=None,
    help="Maximum number of repositories built at once (default: executor default).",
)
@click.option(
    "--command-timeout",
    required=False,
    type=float,
    default=None,
    help="Timeout in seconds for each external command.",
)
@click.option(
    "--manifest-file",
    required=False,
    type=click.Path(dir_okay=False),
    help="Path of the run manifest JSON (default: <workspace>/run-manifest.json).",
)
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
def main(
    repos,
    repo_owner,
    base_url,
    branch,
    webhook_ref,
    webhook_payload,
    scm_branch,
    build_mode,
    run_static_analysis,
    analysis_url,
    analysis_token,
    fail_on_missing_branch,
    workspace,
    image_name,
    image_namespace,
    registry,
    registry_username,
    registry_password,
    base_image,
    dockerfile,
    build_command,
    max_workers,
    command_timeout,
    manifest_file,
    config,
    verbose,
    log_file,
):
    """Check out, build and package repositories, then publish one container image."""
    logger = logging.getLogger("repopipeline")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except PipelineError as exc:
        raise click.ClickException(str(exc)) from exc

    repos = _resolve_option(repos, config_values, "repos")
    image_name = _resolve_option(image_name, config_values, "image_name")
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    fallback_branch = _resolve_option(branch, config_values, "branch")

    if not repos:
        raise click.ClickException("Missing required option '--repos' (or provide it in config).")
    if not image_name:
        raise click.ClickException(
            "Missing required option '--image-name' (or provide it in config)."
        )
    if fallback_branch is not None and str(fallback_branch) not in RepoPipeline.ALLOWED_BRANCHES:
        raise click.ClickException(
            f"Invalid branch '{fallback_branch}' in config. "
            f"Allowed branches: {', '.join(RepoPipeline.ALLOWED_BRANCHES)}"
        )

    if webhook_ref is None and webhook_payload:
        webhook_ref = _read_webhook_payload(webhook_payload)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    try:
        pipeline_config = PipelineConfig(
            repos=str(repos),
            image_name=str(image_name),
            repo_owner=str(_resolve_option(repo_owner, config_values, "repo_owner", default="")),
            base_url=str(
                _resolve_option(base_url, config_values, "base_url", default=DEFAULT_BASE_URL)
            ),
            fallback_branch=_optional(fallback_branch, str),
            build_mode=str(
                _resolve_option(build_mode, config_values, "build_mode", default=BUILD_MODE_SINGLE)
            ),
            run_static_analysis=bool(
                _resolve_option(
                    run_static_analysis, config_values, "run_static_analysis", default=False
                )
            ),
            analysis_url=_resolve_option(analysis_url, config_values, "analysis_url"),
            analysis_token=analysis_token,
            fail_on_missing_branch=bool(
                _resolve_option(
                    fail_on_missing_branch, config_values, "fail_on_missing_branch", default=False
                )
            ),
            workspace=str(
                _resolve_option(workspace, config_values, "workspace", default=DEFAULT_WORKSPACE)
            ),
            image_namespace=str(
                _resolve_option(image_namespace, config_values, "image_namespace", default="")
            ),
            registry=str(_resolve_option(registry, config_values, "registry", default="")),
            registry_username=registry_username,
            registry_password=registry_password,
            base_image=str(
                _resolve_option(base_image, config_values, "base_image", default=DEFAULT_BASE_IMAGE)
            ),
            dockerfile=_resolve_option(dockerfile, config_values, "dockerfile"),
            build_command=str(
                _resolve_option(
                    build_command, config_values, "build_command", default=DEFAULT_BUILD_COMMAND
                )
            ),
            max_workers=_optional(_resolve_option(max_workers, config_values, "max_workers"), int),
            command_timeout=_optional(
                _resolve_option(command_timeout, config_values, "command_timeout"), float
            ),
            manifest_file=_resolve_option(manifest_file, config_values, "manifest_file"),
        )
        pipeline = RepoPipeline(
            config=pipeline_config,
            webhook_ref=webhook_ref,
            scm_branch=scm_branch,
        )
    except (TypeError, ValueError) as exc:
        raise click.ClickException(f"Invalid configuration value: {exc}") from exc
    except PipelineError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(pipeline.run())


if __name__ == "__main__":
    main()
