import pytest
import requests

from osdeploy.config import HealthConfig
from osdeploy.modules import health as health_module
from osdeploy.modules.health import HealthVerifier, classify_response, fetch_health
from osdeploy.modules.kubectl import CommandResult
from osdeploy.modules.models import ClusterHealthStatus

from conftest import FakeResourceClient


@pytest.mark.parametrize("body,expected", [
    ('{"cluster_name": "opensearch", "status": "green"}', ClusterHealthStatus.GREEN),
    ('{"status": "yellow"}', ClusterHealthStatus.YELLOW_OR_RED),
    ('{"status": "red"}', ClusterHealthStatus.YELLOW_OR_RED),
    ('{"status": "GREEN"}', ClusterHealthStatus.UNKNOWN),
    ('{"number_of_nodes": 3}', ClusterHealthStatus.UNKNOWN),
    ('<html>Bad Gateway</html>', ClusterHealthStatus.UNKNOWN),
])
def test_classify_response_body(body, expected):
    assert classify_response(200, body).status == expected


def test_non_2xx_is_never_green():
    report = classify_response(401, '{"status": "green"}')
    assert report.status == ClusterHealthStatus.UNKNOWN
    assert not report.healthy


def test_curl_command_reports_http_code():
    verifier = HealthVerifier(FakeResourceClient(), HealthConfig())
    assert verifier.curl_command() == [
        "curl", "-ks", "-u", "admin:admin", "-w", "\n%{http_code}",
        "https://localhost:9200/_cluster/health",
    ]


def test_verify_waits_then_queries_designated_node():
    client = FakeResourceClient(
        exec_handler=lambda pod, cmd: CommandResult(True, output='{"status":"green"}\n200\n'),
    )
    sleeps = []
    report = HealthVerifier(client, HealthConfig(), settle_delay=30, sleep=sleeps.append).verify()

    assert report.healthy
    assert report.http_status == 200
    assert sleeps == [30]
    assert client.ops("first_pod") == [("first_pod", "io.kompose.service=os01")]


def test_verify_uses_http_status_from_curl():
    client = FakeResourceClient(
        exec_handler=lambda pod, cmd: CommandResult(True, output='{"status":"green"}\n503'),
    )
    report = HealthVerifier(client, HealthConfig(), settle_delay=0).verify()
    assert report.status == ClusterHealthStatus.UNKNOWN
    assert report.http_status == 503


def test_exec_failure_is_unreachable():
    client = FakeResourceClient(
        exec_handler=lambda pod, cmd: CommandResult(False, error="container not running", returncode=1),
    )
    report = HealthVerifier(client, HealthConfig(), settle_delay=0).verify()
    assert report.status == ClusterHealthStatus.UNREACHABLE
    assert "container not running" in report.detail


def test_no_pod_is_unreachable():
    class NoPods(FakeResourceClient):
        def first_pod(self, selector):
            return None

    report = HealthVerifier(NoPods(), HealthConfig(), settle_delay=0).verify()
    assert report.status == ClusterHealthStatus.UNREACHABLE


def test_fetch_health_connection_error(monkeypatch):
    def refuse(*args, **kwargs):
        raise requests.ConnectionError("Connection refused")

    monkeypatch.setattr(health_module.requests, "get", refuse)
    report = fetch_health("https://localhost:29201/_cluster/health", auth=("admin", "admin"))
    assert report.status == ClusterHealthStatus.UNREACHABLE


def test_fetch_health_green(monkeypatch):
    class Response:
        status_code = 200
        text = '{"status": "green"}'

    monkeypatch.setattr(health_module.requests, "get", lambda *args, **kwargs: Response())
    assert fetch_health("https://localhost:29201/_cluster/health").healthy
