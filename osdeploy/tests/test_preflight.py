from osdeploy.config import CapacityConfig, Environment
from osdeploy.modules.preflight import PreflightValidator

from conftest import FakeResourceClient

HEALTHY_NODES = [{"cpu": "4", "memory": "8Gi"}, {"cpu": "4000m", "memory": "8388608Ki"}]


def validator(manifest_dir, client=None, manifests=(), **overrides):
    kwargs = dict(
        system=lambda: "Linux",
        max_map_count=lambda: 262144,
        confirm=lambda question: True,
        nodes=lambda: HEALTHY_NODES,
    )
    kwargs.update(overrides)
    return PreflightValidator(
        client or FakeResourceClient(), Environment("kubectl", manifest_dir),
        CapacityConfig(), manifests, **kwargs
    )


def test_all_checks_pass(tmp_path):
    (tmp_path / "os01-deployment.yaml").write_text("kind: Deployment\n")
    report = validator(tmp_path, manifests=["os01-deployment.yaml"]).run()
    assert report.passed
    assert report.warnings == []


def test_low_max_map_count_fails_with_sysctl_hint(tmp_path):
    client = FakeResourceClient()
    report = validator(tmp_path, client=client, max_map_count=lambda: 65530).run()

    assert not report.passed
    assert "65530" in report.failures[0]
    assert "sudo sysctl -w vm.max_map_count=262144" in report.hints
    # Later checks do not run after a failure
    assert client.ops("cluster_info") == []


def test_macos_requires_confirmation(tmp_path):
    questions = []

    def decline(question):
        questions.append(question)
        return False

    report = validator(tmp_path, system=lambda: "Darwin", confirm=decline).run()
    assert not report.passed
    assert questions == ["Have you configured Docker Desktop with these settings?"]
    assert any("Docker Desktop" in w for w in report.warnings)


def test_macos_confirmed_passes(tmp_path):
    report = validator(tmp_path, system=lambda: "Darwin").run()
    assert report.passed


def test_unsupported_os_fails(tmp_path):
    report = validator(tmp_path, system=lambda: "Windows").run()
    assert report.failures == ["Unsupported operating system: Windows"]


def test_platform_check_can_be_skipped(tmp_path):
    report = validator(tmp_path, system=lambda: "Windows", check_platform=False).run()
    assert report.passed


def test_unreachable_control_plane_fails(tmp_path):
    report = validator(tmp_path, client=FakeResourceClient(reachable=False)).run()
    assert not report.passed
    assert "kubectl cluster-info" in report.hints


def test_low_capacity_only_warns(tmp_path):
    report = validator(tmp_path, nodes=lambda: [{"cpu": "2", "memory": "4Gi"}]).run()
    assert report.passed
    assert len(report.warnings) == 2
    assert "less than 8GB" in report.warnings[0]
    assert "less than 4 CPU cores" in report.warnings[1]


def test_capacity_lookup_errors_only_warn(tmp_path):
    def broken():
        raise RuntimeError("kubeconfig not found")

    report = validator(tmp_path, nodes=broken).run()
    assert report.passed
    assert "kubeconfig not found" in report.warnings[0]


def test_missing_manifests_fail(tmp_path):
    (tmp_path / "os01-deployment.yaml").write_text("kind: Deployment\n")
    report = validator(tmp_path, manifests=["os01-deployment.yaml", "kibana-deployment.yaml"]).run()
    assert not report.passed
    assert "kibana-deployment.yaml" in report.failures[0]
    assert "os01-deployment.yaml" not in report.failures[0]
