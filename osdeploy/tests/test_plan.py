from osdeploy.config import DeployerConfig, ServiceConfig
from osdeploy.modules.models import (
    DeploymentPlan, Predicate, ResourceKind, ResourceRef, Step, StepKind,
)
from osdeploy.modules.plan import (
    build_deployment_plan, build_minimal_plan, component_selector, status_selector,
)


def test_full_plan_phase_order():
    plan = build_deployment_plan(DeployerConfig())
    assert [s.name for s in plan] == [
        "storage", "certificates", "configuration", "services",
        "data-volumes", "nodes", "dashboard", "verify",
    ]
    assert plan.steps[-1].kind == StepKind.VERIFY


def test_certificate_job_gates_configuration():
    plan = build_deployment_plan(DeployerConfig())
    certificates = plan.steps[1]
    assert certificates.readiness.kind == ResourceKind.JOB
    assert certificates.readiness.predicate == Predicate.COMPLETE
    assert certificates.readiness.name == "generate-certificates"
    assert certificates.timeout == 60


def test_node_gate_waits_for_all_nodes():
    plan = build_deployment_plan(DeployerConfig())
    nodes = plan.steps[5]
    assert [r.name for r in nodes.resources] == ["os01", "os02", "os03"]
    assert nodes.readiness.expected_count == 3
    assert nodes.readiness.selector == "io.kompose.service in (os01,os02,os03)"
    assert nodes.timeout == 300


def test_teardown_is_reverse_of_creation():
    plan = build_deployment_plan(DeployerConfig())
    created = plan.created_resources()
    assert plan.teardown_order() == list(reversed(created))
    assert created[0] == ResourceRef(ResourceKind.PERSISTENT_VOLUME, "certificates-pv")
    assert plan.teardown_order()[0] == ResourceRef(ResourceKind.DEPLOYMENT, "kibana")


def test_created_resources_are_unique():
    ref = ResourceRef(ResourceKind.SERVICE, "os01", "os01-service.yaml")
    plan = DeploymentPlan((Step("a", (ref,)), Step("b", (ref,))))
    assert plan.created_resources() == [ref]


def test_manifests_cover_every_resource():
    manifests = build_deployment_plan(DeployerConfig()).manifests()
    assert len(manifests) == 18
    assert "certificates-pv.yaml" in manifests
    assert "generate-certs-job.yaml" in manifests
    assert "kibana-cm1-configmap.yaml" in manifests
    assert "os-data3-persistentvolumeclaim.yaml" in manifests


def test_minimal_plan_gates_each_node():
    plan = build_minimal_plan(DeployerConfig())
    names = [s.name for s in plan]
    assert names == [
        "storage", "certificates", "configuration", "services", "nodes",
        "node-os01", "node-os02", "node-os03", "dashboard",
    ]
    assert all(s.kind == StepKind.APPLY for s in plan)
    assert plan.steps[5].readiness.selector == "io.kompose.service=os01"


def test_minimal_and_full_plans_create_same_resources():
    config = DeployerConfig()
    full = set(build_deployment_plan(config).created_resources())
    minimal = set(build_minimal_plan(config).created_resources())
    assert full == minimal


def test_selectors_follow_configured_nodes():
    config = DeployerConfig(service=ServiceConfig(nodes=["node-a"], dashboard="dash"))
    assert component_selector(config, ["node-a"]) == "io.kompose.service=node-a"
    assert status_selector(config) == "io.kompose.service in (node-a,dash)"
