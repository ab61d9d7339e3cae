"""Deployment plan construction.

The plan is the single source of truth for what gets created, in which
order, and therefore what the cleanup engine deletes (in reverse).
"""
from typing import List

from ..config import DeployerConfig
from .models import (
    ConditionSpec, DeploymentPlan, Predicate, ResourceKind, ResourceRef, Step, StepKind,
)


def _ref(kind: ResourceKind, name: str, manifest: str) -> ResourceRef:
    return ResourceRef(kind, name, manifest)


def storage_refs(config: DeployerConfig) -> List[ResourceRef]:
    certs = config.certificates
    return [
        _ref(ResourceKind.PERSISTENT_VOLUME, certs.volume, f"{certs.volume}.yaml"),
        _ref(ResourceKind.PERSISTENT_VOLUME_CLAIM, certs.claim, f"{certs.claim}.yaml"),
    ]


def certificate_job_ref(config: DeployerConfig) -> ResourceRef:
    return _ref(ResourceKind.JOB, config.certificates.job, "generate-certs-job.yaml")


def configmap_refs(config: DeployerConfig) -> List[ResourceRef]:
    svc = config.service
    refs = [_ref(ResourceKind.CONFIG_MAP, f"{n}-cm0", f"{n}-cm0-configmap.yaml") for n in svc.nodes]
    refs.append(_ref(ResourceKind.CONFIG_MAP, f"{svc.dashboard}-cm1", f"{svc.dashboard}-cm1-configmap.yaml"))
    return refs


def service_refs(config: DeployerConfig) -> List[ResourceRef]:
    svc = config.service
    return [_ref(ResourceKind.SERVICE, n, f"{n}-service.yaml") for n in [*svc.nodes, svc.dashboard]]


def data_claim_refs(config: DeployerConfig) -> List[ResourceRef]:
    return [
        _ref(ResourceKind.PERSISTENT_VOLUME_CLAIM, f"os-data{i}", f"os-data{i}-persistentvolumeclaim.yaml")
        for i, _ in enumerate(config.service.nodes, 1)
    ]


def node_refs(config: DeployerConfig) -> List[ResourceRef]:
    return [_ref(ResourceKind.DEPLOYMENT, n, f"{n}-deployment.yaml") for n in config.service.nodes]


def dashboard_ref(config: DeployerConfig) -> ResourceRef:
    name = config.service.dashboard
    return _ref(ResourceKind.DEPLOYMENT, name, f"{name}-deployment.yaml")


def component_selector(config: DeployerConfig, names: List[str]) -> str:
    """Label selector matching the given components, e.g. ``label in (a,b)``."""
    label = config.service.component_label
    if len(names) == 1:
        return f"{label}={names[0]}"
    return f"{label} in ({','.join(names)})"


def status_selector(config: DeployerConfig) -> str:
    return component_selector(config, [*config.service.nodes, config.service.dashboard])


def build_deployment_plan(config: DeployerConfig) -> DeploymentPlan:
    """Full plan: storage, certificates, config, services, data, nodes, dashboard, verify."""
    timeouts = config.timeouts
    nodes = config.service.nodes
    job = certificate_job_ref(config)
    steps = (
        Step("storage", tuple(storage_refs(config)),
             description="Certificate volume and claim"),
        Step("certificates", (job,),
             readiness=ConditionSpec(ResourceKind.JOB, Predicate.COMPLETE, name=job.name,
                                     timeout=timeouts.certificate_job),
             timeout=timeouts.certificate_job,
             description="Certificate generation job"),
        Step("configuration", tuple(configmap_refs(config)),
             description="Node and dashboard configuration"),
        Step("services", tuple(service_refs(config)),
             description="Network services"),
        Step("data-volumes", tuple(data_claim_refs(config)),
             description="Data volume claims"),
        Step("nodes", tuple(node_refs(config)),
             readiness=ConditionSpec(ResourceKind.POD, Predicate.READY,
                                     selector=component_selector(config, nodes),
                                     expected_count=len(nodes),
                                     timeout=timeouts.readiness),
             timeout=timeouts.readiness,
             description="OpenSearch nodes"),
        Step("dashboard", (dashboard_ref(config),),
             readiness=ConditionSpec(ResourceKind.POD, Predicate.READY,
                                     selector=component_selector(config, [config.service.dashboard]),
                                     timeout=timeouts.readiness),
             timeout=timeouts.readiness,
             description="OpenSearch Dashboards"),
        Step("verify", kind=StepKind.VERIFY, timeout=timeouts.settle_delay,
             description="Cluster health check"),
    )
    return DeploymentPlan(steps)


def build_minimal_plan(config: DeployerConfig) -> DeploymentPlan:
    """Reduced plan for disposable environments: no health verification,
    data claims created with storage, and one readiness gate per node."""
    timeouts = config.timeouts
    job = certificate_job_ref(config)
    steps = [
        Step("storage", tuple(storage_refs(config) + data_claim_refs(config)),
             description="Certificate and data volumes"),
        Step("certificates", (job,),
             readiness=ConditionSpec(ResourceKind.JOB, Predicate.COMPLETE, name=job.name,
                                     timeout=timeouts.certificate_job),
             timeout=timeouts.certificate_job,
             description="Certificate generation job"),
        Step("configuration", tuple(configmap_refs(config)), description="Configurations"),
        Step("services", tuple(service_refs(config)), description="Services"),
        Step("nodes", tuple(node_refs(config)), description="OpenSearch nodes"),
    ]
    for name in config.service.nodes:
        steps.append(Step(
            f"node-{name}",
            readiness=ConditionSpec(ResourceKind.POD, Predicate.READY,
                                    selector=component_selector(config, [name]),
                                    timeout=timeouts.readiness),
            timeout=timeouts.readiness,
            description=f"Readiness of {name}",
        ))
    steps.append(Step(
        "dashboard", (dashboard_ref(config),),
        readiness=ConditionSpec(ResourceKind.POD, Predicate.READY,
                                selector=component_selector(config, [config.service.dashboard]),
                                timeout=timeouts.readiness),
        timeout=timeouts.readiness,
        description="OpenSearch Dashboards",
    ))
    return DeploymentPlan(tuple(steps))
