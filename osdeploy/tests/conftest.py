from pathlib import Path

import pytest

from osdeploy.config import DeployerConfig, Environment, RunOptions, TimeoutConfig
from osdeploy.modules.kubectl import CommandResult
from osdeploy.modules.models import ResourceKind
from osdeploy.modules.plan import build_deployment_plan
from osdeploy.modules.waiter import WaitResult

NOT_FOUND = 'Error from server (NotFound): resource not found'


def _kind(kind):
    return kind.value if isinstance(kind, ResourceKind) else kind


class FakeResourceClient:
    """In-memory stand-in for KubectlClient that records every call in order."""

    def __init__(self, existing=(), fail_apply=(), fail_delete=(), not_ready=(),
                 reachable=True, exec_handler=None, copy_handler=None):
        self.environment = Environment(kubectl="kubectl", manifest_dir=Path("."))
        self.existing = set(existing)
        self.fail_apply = set(fail_apply)
        self.fail_delete = set(fail_delete)
        self.not_ready = set(not_ready)
        self.reachable = reachable
        self.exec_handler = exec_handler
        self.copy_handler = copy_handler
        self.calls = []

    def _record(self, *call):
        self.calls.append(call)

    def ops(self, op):
        return [c for c in self.calls if c[0] == op]

    def index(self, *call):
        return self.calls.index(call)

    def apply(self, ref):
        self._record('apply', str(ref))
        if str(ref) in self.fail_apply:
            return CommandResult(False, error='admission webhook denied the request', returncode=1)
        self.existing.add((ref.kind.value, ref.name))
        return CommandResult(True, output=f"{ref} created")

    def apply_document(self, document):
        name = document['metadata']['name']
        self._record('apply_document', name)
        self.existing.add(('pod', name))
        return CommandResult(True, output=f"pod/{name} created")

    def delete(self, kind, name, force=False):
        key = (_kind(kind), name)
        self._record('delete', f"{key[0]}/{name}")
        if f"{key[0]}/{name}" in self.fail_delete:
            return CommandResult(False, error='etcdserver: request timed out', returncode=1)
        if key not in self.existing:
            return CommandResult(False, error=NOT_FOUND, returncode=1, not_found=True)
        self.existing.discard(key)
        return CommandResult(True, output=f"{key[0]}/{name} deleted")

    def exists(self, kind, name):
        key = (_kind(kind), name)
        self._record('exists', f"{key[0]}/{name}")
        if key in self.existing:
            return CommandResult(True, output=f"{key[0]}/{name}")
        return CommandResult(False, error=NOT_FOUND, returncode=1, not_found=True)

    def exec(self, pod, command):
        self._record('exec', pod, tuple(command))
        if self.exec_handler:
            return self.exec_handler(pod, list(command))
        return CommandResult(True)

    def copy_from_pod(self, pod, src_path, dest_path):
        self._record('copy', pod, src_path)
        if self.copy_handler:
            return self.copy_handler(pod, src_path, Path(dest_path))
        ca = Path(dest_path) / 'ca'
        ca.mkdir(parents=True, exist_ok=True)
        (ca / 'root-ca.pem').write_text('-----BEGIN CERTIFICATE-----\n')
        return CommandResult(True)

    def get_logs(self, selector, tail=None):
        self._record('logs', selector)
        return CommandResult(True, output=f"logs for {selector}")

    def get_pod_logs(self, pod, tail=None):
        self._record('pod_logs', pod)
        return CommandResult(True, output=f"logs for {pod}")

    def list_resources(self, kinds, selector=None):
        self._record('list', tuple(kinds), selector)
        return CommandResult(True, output=f"NAME   READY   STATUS\n{selector or kinds[0]}   0/1   Pending")

    def cluster_info(self):
        self._record('cluster_info')
        if self.reachable:
            return CommandResult(True, output='Kubernetes control plane is running')
        return CommandResult(False, error='The connection to the server was refused', returncode=1)

    def first_pod(self, selector):
        self._record('first_pod', selector)
        return 'os01-5d8f7c9b4-abcde'

    def get_json(self, kind, name=None, selector=None):
        self._record('get_json', _kind(kind), name, selector)
        return CommandResult(True, output='{"items": []}')

    def wait_for_condition(self, condition, timeout=None):
        key = condition.name or condition.selector
        self._record('wait', key)
        if key in self.not_ready:
            return WaitResult(False, '0/1 ready (Pending)', elapsed=timeout or 0, attempts=3)
        return WaitResult(True, 'ready', elapsed=0.1, attempts=1)


def green_exec(pod, command):
    if command[0] == 'curl':
        return CommandResult(True, output='{"cluster_name":"opensearch","status":"green"}\n200')
    return CommandResult(True)


@pytest.fixture
def config():
    return DeployerConfig(timeouts=TimeoutConfig(settle_delay=0, stale_grace=0, deletion_settle=0))


@pytest.fixture
def manifest_dir(tmp_path, config):
    directory = tmp_path / 'manifests'
    directory.mkdir()
    for manifest in build_deployment_plan(config).manifests():
        (directory / manifest).write_text('apiVersion: v1\n')
    return directory


@pytest.fixture
def backup_root(tmp_path):
    root = tmp_path / 'backups'
    root.mkdir()
    return root


@pytest.fixture
def options(manifest_dir, backup_root):
    return RunOptions(manifest_dir=manifest_dir, backup_root=backup_root)


@pytest.fixture
def fake_client():
    return FakeResourceClient(exec_handler=green_exec)
