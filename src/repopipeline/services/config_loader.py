"""Configuration loader for RepoPipeline."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from repopipeline.errors import PipelineError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults.

    Registry and analysis credentials are not accepted in
    the file; they come from the environment or the command line.
    """

    SUPPORTED_KEYS = {
        "repos",
        "repo_owner",
        "base_url",
        "branch",
        "build_mode",
        "run_static_analysis",
        "analysis_url",
        "fail_on_missing_branch",
        "workspace",
        "image_name",
        "image_namespace",
        "registry",
        "base_image",
        "dockerfile",
        "build_command",
        "max_workers",
        "command_timeout",
        "manifest_file",
        "verbose",
        "log_file",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise PipelineError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise PipelineError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise PipelineError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(str(key) for key in set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise PipelineError(f"Unknown configuration keys: {unknown_list}")

        # A YAML list is accepted for repos and joined into the comma form.
        repos = parsed.get("repos")
        if isinstance(repos, list):
            parsed["repos"] = ",".join(str(item) for item in repos)

        return parsed
