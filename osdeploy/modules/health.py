"""OpenSearch cluster health verification."""
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

import requests
from jsonschema import ValidationError, validate

from ..config import HealthConfig
from .models import ClusterHealthStatus

logger = logging.getLogger("osdeploy.health")

HEALTH_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "status": {"type": "string", "enum": ["green", "yellow", "red"]},
        "cluster_name": {"type": "string"},
        "number_of_nodes": {"type": "integer"},
    },
    "required": ["status"],
}


@dataclass
class HealthReport:
    status: ClusterHealthStatus
    detail: str = ''
    http_status: Optional[int] = None
    body: Any = None

    @property
    def healthy(self) -> bool:
        return self.status == ClusterHealthStatus.GREEN


def classify_response(http_status: Optional[int], body: str) -> HealthReport:
    """Classify a cluster health response.

    Only a 2xx response whose ``status`` is exactly ``"green"`` is GREEN.
    """
    if http_status is None or not 200 <= http_status < 300:
        return HealthReport(ClusterHealthStatus.UNKNOWN, f"HTTP {http_status}", http_status, body)
    try:
        data = json.loads(body)
        validate(instance=data, schema=HEALTH_RESPONSE_SCHEMA)
    except ValueError as e:
        return HealthReport(ClusterHealthStatus.UNKNOWN, f"Invalid JSON: {e}", http_status, body)
    except ValidationError as e:
        return HealthReport(ClusterHealthStatus.UNKNOWN, f"Unexpected response: {e.message}", http_status, body)

    status = data["status"]
    if status == "green":
        return HealthReport(ClusterHealthStatus.GREEN, "status green", http_status, data)
    return HealthReport(ClusterHealthStatus.YELLOW_OR_RED, f"status {status}", http_status, data)


def fetch_health(url: str, auth: Optional[Tuple[str, str]] = None, timeout: float = 5,
                 verify: bool = False) -> HealthReport:
    """Query a health endpoint directly over HTTP, e.g. through a port-forward."""
    try:
        response = requests.get(url, auth=auth, timeout=timeout, verify=verify)
    except requests.RequestException as e:
        return HealthReport(ClusterHealthStatus.UNREACHABLE, str(e))
    return classify_response(response.status_code, response.text)


class HealthVerifier:
    """Issues one authenticated health query through a designated node."""

    def __init__(self, client, health: HealthConfig, settle_delay: float = 30,
                 sleep: Callable[[float], None] = time.sleep):
        self.client = client
        self.health = health
        self.settle_delay = settle_delay
        self.sleep = sleep

    def curl_command(self):
        return [
            "curl", "-ks",
            "-u", f"{self.health.username}:{self.health.password}",
            "-w", "\n%{http_code}",
            self.health.url,
        ]

    def verify(self) -> HealthReport:
        if self.settle_delay > 0:
            logger.info(f"Waiting {self.settle_delay:.0f}s for pods to stabilize...")
            self.sleep(self.settle_delay)

        logger.info("Checking OpenSearch cluster health...")
        pod = self.client.first_pod(self.health.node_selector)
        if not pod:
            return HealthReport(ClusterHealthStatus.UNREACHABLE,
                                f"No pod found for {self.health.node_selector}")

        result = self.client.exec(pod, self.curl_command())
        if not result.ok:
            return HealthReport(ClusterHealthStatus.UNREACHABLE,
                                result.diagnostic or f"curl exited {result.returncode}")

        body, _, code = result.output.rstrip().rpartition("\n")
        try:
            http_status = int(code)
        except ValueError:
            http_status = None
        report = classify_response(http_status, body)
        logger.debug(f"Health response from {pod}: {report.detail}")
        return report
