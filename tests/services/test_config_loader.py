import pytest

from repopipeline.errors import PipelineError
from repopipeline.services.config_loader import ConfigLoader


def test_config_loader_loads_yaml_mapping(tmp_path):
    config_file = tmp_path / ".repopipeline.yml"
    config_file.write_text(
        "repos: svcA, svcB\nimage_name: platform\nmax_workers: 4\n",
        encoding="utf-8",
    )

    loader = ConfigLoader()
    loaded = loader.load(str(config_file))

    assert loaded["repos"] == "svcA, svcB"
    assert loaded["image_name"] == "platform"
    assert loaded["max_workers"] == 4


def test_config_loader_joins_repo_list(tmp_path):
    config_file = tmp_path / ".repopipeline.yml"
    config_file.write_text("repos:\n  - svcA\n  - svcB\n", encoding="utf-8")

    loaded = ConfigLoader().load(str(config_file))

    assert loaded["repos"] == "svcA,svcB"


def test_config_loader_rejects_unknown_keys(tmp_path):
    config_file = tmp_path / ".repopipeline.yml"
    config_file.write_text("registry_password: hunter2\n", encoding="utf-8")

    loader = ConfigLoader()

    with pytest.raises(PipelineError, match="Unknown configuration keys: registry_password"):
        loader.load(str(config_file))


def test_config_loader_rejects_non_mapping(tmp_path):
    config_file = tmp_path / ".repopipeline.yml"
    config_file.write_text("- svcA\n- svcB\n", encoding="utf-8")

    with pytest.raises(PipelineError, match="YAML mapping"):
        ConfigLoader().load(str(config_file))


def test_config_loader_missing_file_raises(tmp_path):
    with pytest.raises(PipelineError, match="Config file not found"):
        ConfigLoader().load(str(tmp_path / "missing.yml"))


def test_config_loader_without_path_returns_empty():
    assert ConfigLoader().load(None) == {}
