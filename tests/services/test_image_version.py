import subprocess

from repopipeline.services.image_version import ImageVersionResolver


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None


def test_next_version_without_tags_is_v1():
    assert ImageVersionResolver.next_version([]) == "v1"


def test_next_version_is_max_plus_one():
    assert ImageVersionResolver.next_version(["v1", "v3", "v2"]) == "v4"


def test_next_version_ignores_non_numeric_tags():
    tags = ["latest", "v2-rc1", "v10", "release-7", "<none>", "v9"]

    assert ImageVersionResolver.next_version(tags) == "v11"


def test_resolve_reads_tags_from_docker_images():
    calls = []

    def fake_run_cmd(cmd, check=True, capture_output=False, **_kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="v2\nlatest\nv5\n\n", stderr="")

    resolver = ImageVersionResolver(logger=DummyLogger())

    assert resolver.resolve("registry.example.com/acme/platform", fake_run_cmd) == "v6"
    assert calls == [
        ["docker", "images", "registry.example.com/acme/platform", "--format", "{{.Tag}}"]
    ]
