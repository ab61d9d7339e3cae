import json
import subprocess

import pytest
import yaml

from osdeploy.config import Environment
from osdeploy.errors import PreflightFailure, ToolNotFound
from osdeploy.modules import kubectl as kubectl_module
from osdeploy.modules.kubectl import KubectlClient, detect_kubectl
from osdeploy.modules.models import ConditionSpec, Predicate, ResourceKind, ResourceRef


class Recorder:
    """Replaces subprocess.run, answering with canned results."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.commands = []
        self.inputs = []

    def __call__(self, cmd, input=None, **kwargs):
        self.commands.append(cmd)
        self.inputs.append(input)
        returncode, stdout, stderr = self.responses.pop(0) if self.responses else (0, "", "")
        return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)


@pytest.fixture
def client(tmp_path):
    return KubectlClient(Environment("kubectl", tmp_path), poll_interval=1)


def use(monkeypatch, recorder):
    monkeypatch.setattr(kubectl_module.subprocess, "run", recorder)
    return recorder


def test_apply_resolves_manifest_in_manifest_dir(monkeypatch, client, tmp_path):
    recorder = use(monkeypatch, Recorder())
    result = client.apply(ResourceRef(ResourceKind.SERVICE, "os01", "os01-service.yaml"))
    assert result.ok
    assert recorder.commands[0] == ["kubectl", "apply", "-f", str(tmp_path / "os01-service.yaml")]


def test_apply_document_goes_through_stdin(monkeypatch, client):
    recorder = use(monkeypatch, Recorder())
    client.apply_document({"kind": "Pod", "metadata": {"name": "cert-backup"}})
    assert recorder.commands[0] == ["kubectl", "apply", "-f", "-"]
    assert yaml.safe_load(recorder.inputs[0])["metadata"]["name"] == "cert-backup"


def test_delete_reports_not_found(monkeypatch, client):
    use(monkeypatch, Recorder(
        (1, "", 'Error from server (NotFound): persistentvolumeclaims "certificates-pvc" not found\n'),
    ))
    result = client.delete(ResourceKind.PERSISTENT_VOLUME_CLAIM, "certificates-pvc")
    assert not result.ok
    assert result.not_found


def test_delete_other_errors_are_not_not_found(monkeypatch, client):
    use(monkeypatch, Recorder((1, "", "error: You must be logged in to the server (Unauthorized)\n")))
    result = client.delete("pvc", "certificates-pvc")
    assert not result.ok
    assert not result.not_found


def test_force_delete_flags(monkeypatch, client):
    recorder = use(monkeypatch, Recorder())
    client.delete(ResourceKind.POD, "cert-backup", force=True)
    assert recorder.commands[0] == ["kubectl", "delete", "pod", "cert-backup", "--force", "--grace-period=0"]


def test_timeout_becomes_failed_result(monkeypatch, client):
    def hang(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))

    monkeypatch.setattr(kubectl_module.subprocess, "run", hang)
    result = client.cluster_info()
    assert not result.ok
    assert "timed out" in result.error


def test_job_complete_condition(monkeypatch, client):
    job = {"status": {"succeeded": 1, "conditions": [{"type": "Complete", "status": "True"}]}}
    use(monkeypatch, Recorder((0, json.dumps(job), "")))
    condition = ConditionSpec(ResourceKind.JOB, Predicate.COMPLETE, name="generate-certificates")
    assert client.check_condition(condition) == (True, "Complete")


def test_job_still_running(monkeypatch, client):
    job = {"status": {"active": 1}}
    use(monkeypatch, Recorder((0, json.dumps(job), "")))
    condition = ConditionSpec(ResourceKind.JOB, Predicate.COMPLETE, name="generate-certificates")
    satisfied, state = client.check_condition(condition)
    assert not satisfied
    assert "active=1" in state


def pod(name, ready):
    return {
        "metadata": {"name": name},
        "status": {"phase": "Running", "conditions": [{"type": "Ready", "status": "True" if ready else "False"}]},
    }


def test_pods_ready_needs_expected_count(monkeypatch, client):
    pods = {"items": [pod("os01-a", True), pod("os02-b", True), pod("os03-c", False)]}
    recorder = use(monkeypatch, Recorder((0, json.dumps(pods), "")))
    condition = ConditionSpec(ResourceKind.POD, Predicate.READY,
                              selector="io.kompose.service in (os01,os02,os03)", expected_count=3)
    satisfied, state = client.check_condition(condition)

    assert not satisfied
    assert state.startswith("2/3 ready")
    assert recorder.commands[0][-4:] == ["-l", "io.kompose.service in (os01,os02,os03)", "-o", "json"]


def test_wait_for_condition_polls_until_ready(monkeypatch, client):
    pending = {"items": [pod("kibana-a", False)]}
    ready = {"items": [pod("kibana-a", True)]}
    use(monkeypatch, Recorder((0, json.dumps(pending), ""), (0, json.dumps(ready), "")))
    monkeypatch.setattr(kubectl_module.time, "sleep", lambda seconds: None)

    condition = ConditionSpec(ResourceKind.POD, Predicate.READY, selector="io.kompose.service=kibana")
    result = client.wait_for_condition(condition, timeout=60)
    assert result.satisfied
    assert result.attempts == 2


def test_first_pod(monkeypatch, client):
    use(monkeypatch, Recorder((0, json.dumps({"items": [pod("os01-a", True)]}), "")))
    assert client.first_pod("io.kompose.service=os01") == "os01-a"


def test_detect_kubectl_falls_back_to_microk8s(monkeypatch):
    monkeypatch.setattr(kubectl_module.Config, "KUBECTL", "")
    monkeypatch.setattr(kubectl_module.shutil, "which",
                        lambda name: "/snap/bin/microk8s.kubectl" if name == "microk8s.kubectl" else None)
    assert detect_kubectl() == "microk8s.kubectl"


def test_detect_kubectl_missing(monkeypatch):
    monkeypatch.setattr(kubectl_module.Config, "KUBECTL", "")
    monkeypatch.setattr(kubectl_module.shutil, "which", lambda name: None)
    with pytest.raises(ToolNotFound) as excinfo:
        detect_kubectl()
    assert isinstance(excinfo.value, PreflightFailure)
