import subprocess

import requests

from repopipeline.models import BuildOutcome
from repopipeline.services.static_analysis import StaticAnalysisService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *_exc_info):
        self.closed = True
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


class FakeRequests:
    RequestException = requests.RequestException

    def __init__(self, reachable=True, status_code=200):
        self.reachable = reachable
        self.status_code = status_code
        self.urls = []
        self.responses = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        if not self.reachable:
            raise requests.ConnectionError("connection refused")
        response = FakeResponse(self.status_code)
        self.responses.append(response)
        return response


def _service(requests_module, token="tok-123"):
    return StaticAnalysisService(
        logger=DummyLogger(),
        console=DummyConsole(),
        server_url="https://sonar.example.com/",
        token=token,
        requests_module=requests_module,
    )


def _outcomes(tmp_path):
    return [
        BuildOutcome.built("svcA", str(tmp_path / "artifacts" / "svcA.jar"), str(tmp_path / "svcA")),
        BuildOutcome.skipped("svcB", "branch missing"),
        BuildOutcome.built("svcC", str(tmp_path / "artifacts" / "svcC.jar"), str(tmp_path / "svcC")),
    ]


def test_submit_analyses_only_built_repositories(tmp_path):
    calls = []

    def fake_run_cmd(cmd, check=True, capture_output=False, **kwargs):
        calls.append((cmd, kwargs))
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    fake_requests = FakeRequests()
    submitted = _service(fake_requests).submit(_outcomes(tmp_path), fake_run_cmd)

    assert submitted == ["svcA", "svcC"]
    assert fake_requests.urls == ["https://sonar.example.com/api/system/status"]
    cmd, kwargs = calls[0]
    assert cmd == [
        "mvn",
        "-B",
        "sonar:sonar",
        "-Dsonar.host.url=https://sonar.example.com",
        "-Dsonar.projectKey=svcA",
    ]
    assert kwargs["cwd"] == str(tmp_path / "svcA")
    assert kwargs["env"]["SONAR_TOKEN"] == "tok-123"
    assert all("tok-123" not in part for part in cmd)


def test_submit_skips_when_server_unreachable(tmp_path):
    def fake_run_cmd(*_args, **_kwargs):
        raise AssertionError("no analysis should run when the server is down")

    assert _service(FakeRequests(reachable=False)).submit(_outcomes(tmp_path), fake_run_cmd) == []


def test_submit_failure_is_not_fatal(tmp_path):
    def fake_run_cmd(cmd, check=True, capture_output=False, **_kwargs):
        assert check is False
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="ANALYSIS FAILED")

    assert _service(FakeRequests()).submit(_outcomes(tmp_path), fake_run_cmd) == []


def test_submit_without_built_repositories_does_not_probe():
    fake_requests = FakeRequests()

    assert _service(fake_requests).submit([BuildOutcome.failed("svcA", "boom")], None) == []
    assert fake_requests.urls == []


def test_is_reachable_closes_response_on_http_error():
    fake_requests = FakeRequests(status_code=503)

    assert _service(fake_requests).is_reachable() is False
    assert [response.closed for response in fake_requests.responses] == [True]
