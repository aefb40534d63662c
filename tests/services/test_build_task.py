import os
import subprocess

import pytest

from repopipeline.models import BuildStatus, RepoSpec, RunContext
from repopipeline.services.build_task import PerRepoBuildTask
from repopipeline.services.filesystem import FileSystemService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def debug(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None

    def error(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeToolchain:
    """Simulates git clone and the build tool on the local filesystem."""

    def __init__(self, artifacts=("app.jar",), clone_returncode=0, build_returncode=0, libs=()):
        self.artifacts = artifacts
        self.clone_returncode = clone_returncode
        self.build_returncode = build_returncode
        self.libs = libs
        self.calls = []

    def __call__(self, cmd, check=True, capture_output=False, **kwargs):
        self.calls.append((cmd, kwargs))
        if cmd[:2] == ["git", "clone"]:
            if self.clone_returncode != 0:
                return subprocess.CompletedProcess(
                    cmd,
                    self.clone_returncode,
                    stdout="",
                    stderr="Cloning into...\nfatal: Remote branch feature/dev not found in upstream origin",
                )
            os.makedirs(cmd[-1], exist_ok=True)
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

        if self.build_returncode != 0:
            return subprocess.CompletedProcess(
                cmd, self.build_returncode, stdout="[ERROR] COMPILATION ERROR", stderr=""
            )
        target = os.path.join(kwargs["cwd"], "target")
        os.makedirs(target, exist_ok=True)
        for name in self.artifacts:
            with open(os.path.join(target, name), "w", encoding="utf-8") as file_obj:
                file_obj.write(name)
        if self.libs:
            lib_dir = os.path.join(target, "lib")
            os.makedirs(lib_dir, exist_ok=True)
            for name in self.libs:
                with open(os.path.join(lib_dir, name), "w", encoding="utf-8") as file_obj:
                    file_obj.write(name)
        return subprocess.CompletedProcess(cmd, 0, stdout="BUILD SUCCESS", stderr="")


def _context(tmp_path) -> RunContext:
    repo = RepoSpec(name="svcA", clone_url="https://git.example.com/acme/svcA.git")
    return RunContext(
        run_id="abc123",
        branch="feature/dev",
        repos=(repo,),
        workspace_dir=str(tmp_path),
        checkouts_dir=str(tmp_path / "checkouts"),
        artifacts_dir=str(tmp_path / "artifacts"),
    )


def _task(tmp_path, run_cmd, build_mode="single") -> PerRepoBuildTask:
    context = _context(tmp_path)
    return PerRepoBuildTask(
        repo=context.repos[0],
        run_context=context,
        run_cmd=run_cmd,
        filesystem_service=FileSystemService(logger=DummyLogger(), console=DummyConsole()),
        logger=DummyLogger(),
        build_mode=build_mode,
    )


def test_select_artifact_skips_sources_and_javadoc():
    candidates = ["a-sources.jar", "a.jar", "a-javadoc.jar"]

    assert PerRepoBuildTask.select_artifact(candidates) == "a.jar"


def test_select_artifact_uses_lexical_order():
    assert PerRepoBuildTask.select_artifact(["b.jar", "a-1.0.jar", "a-1.0-SOURCES.jar"]) == "a-1.0.jar"


def test_select_artifact_returns_none_when_only_excluded():
    assert PerRepoBuildTask.select_artifact(["a-sources.jar", "a-javadoc.jar"]) is None


def test_checkout_is_shallow_single_branch(tmp_path):
    fake = FakeToolchain()
    task = _task(tmp_path, fake)

    assert task.checkout_command() == [
        "git",
        "clone",
        "--depth",
        "1",
        "--branch",
        "feature/dev",
        "--single-branch",
        "https://git.example.com/acme/svcA.git",
        str(tmp_path / "checkouts" / "svcA"),
    ]


def test_run_stages_primary_artifact_under_repo_name(tmp_path):
    fake = FakeToolchain(artifacts=("svc-a-1.0-sources.jar", "svc-a-1.0.jar", "svc-a-1.0-javadoc.jar"))
    task = _task(tmp_path, fake)

    outcome = task.run()

    assert outcome.status is BuildStatus.BUILT
    assert outcome.artifact_path == str(tmp_path / "artifacts" / "svcA.jar")
    assert (tmp_path / "artifacts" / "svcA.jar").read_text(encoding="utf-8") == "svc-a-1.0.jar"
    build_cmd, build_kwargs = fake.calls[1]
    assert build_cmd == ["mvn", "-B", "-DskipTests", "package"]
    assert build_kwargs["cwd"] == str(tmp_path / "checkouts" / "svcA")


def test_run_records_skip_when_branch_is_missing(tmp_path):
    fake = FakeToolchain(clone_returncode=128)
    task = _task(tmp_path, fake)

    outcome = task.run()

    assert outcome.status is BuildStatus.SKIPPED_MISSING_BRANCH
    assert "feature/dev" in outcome.reason
    assert "not found in upstream origin" in outcome.reason
    assert len(fake.calls) == 1


def test_run_fails_when_build_fails(tmp_path):
    fake = FakeToolchain(build_returncode=1)
    task = _task(tmp_path, fake)

    outcome = task.run()

    assert outcome.status is BuildStatus.FAILED
    assert "Build failed for svcA" in outcome.reason
    assert "COMPILATION ERROR" in outcome.reason


def test_run_fails_when_no_primary_artifact(tmp_path):
    fake = FakeToolchain(artifacts=("svcA-sources.jar", "svcA-javadoc.jar"))
    task = _task(tmp_path, fake)

    outcome = task.run()

    assert outcome.status is BuildStatus.FAILED
    assert "No primary artifact found for svcA" in outcome.reason
    assert not (tmp_path / "artifacts" / "svcA.jar").exists()


def test_bundle_mode_stages_runtime_dependencies(tmp_path):
    fake = FakeToolchain(artifacts=("svcA.war",), libs=("guava.jar", "slf4j.jar"))
    task = _task(tmp_path, fake, build_mode="bundle")

    outcome = task.run()

    assert outcome.status is BuildStatus.BUILT
    assert outcome.artifact_path.endswith("svcA.war")
    assert (tmp_path / "artifacts" / "lib" / "svcA" / "guava.jar").exists()
    build_cmd, _ = fake.calls[1]
    assert "dependency:copy-dependencies" in build_cmd
    assert "-DoutputDirectory=target/lib" in build_cmd


@pytest.mark.parametrize("existing", [True, False])
def test_checkout_replaces_leftover_directory(tmp_path, existing):
    leftover = tmp_path / "checkouts" / "svcA"
    if existing:
        leftover.mkdir(parents=True)
        (leftover / "stale.txt").write_text("old", encoding="utf-8")

    task = _task(tmp_path, FakeToolchain())
    task.checkout()

    assert not (leftover / "stale.txt").exists()
    assert leftover.is_dir()


@pytest.mark.parametrize("name", ["..", "."])
def test_run_refuses_checkout_outside_checkouts_dir(tmp_path, name):
    keep = tmp_path / "keep.txt"
    keep.write_text("keep", encoding="utf-8")
    context = _context(tmp_path)
    fake = FakeToolchain()
    task = PerRepoBuildTask(
        repo=RepoSpec(name=name, clone_url=f"https://git.example.com/acme/{name}.git"),
        run_context=context,
        run_cmd=fake,
        filesystem_service=FileSystemService(logger=DummyLogger(), console=DummyConsole()),
        logger=DummyLogger(),
    )

    outcome = task.run()

    assert outcome.status is BuildStatus.FAILED
    assert "would land outside" in outcome.reason
    assert fake.calls == []
    assert keep.exists()
