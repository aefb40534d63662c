"""Actionable error catalog for RepoPipeline."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "invalid_repo_names": {
        "what": "Invalid repository names: {names}.",
        "next": (
            "Use only letters, digits, `.`, `_` and `-` in repository names; "
            "a name cannot be only dots."
        ),
    },
    "empty_repo_list": {
        "what": "No repositories to build.",
        "next": "Provide at least one name with `--repos` or `repos` in the config file.",
    },
    "unsafe_checkout_path": {
        "what": "Checkout of {repo} would land outside {checkouts}.",
        "next": "Rename the repository entry so it is a plain directory name.",
    },
    "branch_checkout_failed": {
        "what": "Could not check out branch `{branch}` of {repo}.",
        "next": "Check that the branch exists and that the runner can clone {url}.",
    },
    "build_failed": {
        "what": "Build failed for {repo}.",
        "next": "Run `{command}` in a checkout of {repo} to reproduce the failure.",
    },
    "artifact_not_found": {
        "what": "No primary artifact found for {repo} in {path}.",
        "next": "Check the build output. Sources and javadoc archives are never published.",
    },
    "fail_fast_abort": {
        "what": "Repository {repo} did not build ({status}) and fail-fast is enabled.",
        "next": "Fix {repo} or run without `--fail-on-missing-branch` to skip it.",
    },
    "missing_registry_credentials": {
        "what": "Registry credentials are missing.",
        "next": "Export REGISTRY_USERNAME and REGISTRY_PASSWORD before running the pipeline.",
    },
    "registry_login_failed": {
        "what": "Login to registry {registry} failed.",
        "next": "Check REGISTRY_USERNAME and REGISTRY_PASSWORD for {registry}.",
    },
    "image_build_failed": {
        "what": "Container image build failed for {image}.",
        "next": "Inspect the Dockerfile and the staged artifacts under {context}.",
    },
    "image_push_failed": {
        "what": "Pushing {image} failed.",
        "next": "Check registry reachability and push permissions for the namespace.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
