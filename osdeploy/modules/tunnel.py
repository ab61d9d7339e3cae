"""Local port forwarding to the OpenSearch and Dashboards services.

Independent of deploy/cleanup: forwards are detached ``kubectl port-forward``
processes whose PIDs are kept in a small JSON state file.
"""
import json
import logging
import os
import signal
import socket
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..config import Environment, HealthConfig, TunnelConfig
from ..errors import OsDeployError
from .health import HealthReport, fetch_health
from .models import ClusterHealthStatus

logger = logging.getLogger("osdeploy.tunnel")


@dataclass(frozen=True)
class Forward:
    name: str
    service: str
    local_port: int
    remote_port: int

    @property
    def url(self) -> str:
        return f"http://localhost:{self.local_port}"


@dataclass
class ForwardStatus:
    forward: Forward
    active: bool
    health: Optional[HealthReport] = None

    @property
    def responding(self) -> bool:
        return self.health is not None and self.health.status != ClusterHealthStatus.UNREACHABLE


def port_in_use(port: int, host: str = "127.0.0.1") -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(1)
        return sock.connect_ex((host, port)) == 0


def _process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class PortForwardManager:
    """Start, stop and inspect the port-forward processes."""

    def __init__(
        self,
        environment: Environment,
        tunnel: TunnelConfig,
        health: HealthConfig,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        in_use: Callable[[int], bool] = port_in_use,
        alive: Callable[[int], bool] = _process_alive,
        kill: Callable[[int, int], None] = os.kill,
        sleep: Callable[[float], None] = time.sleep,
        probe: Callable[..., HealthReport] = fetch_health,
    ):
        self.environment = environment
        self.tunnel = tunnel
        self.health = health
        self.state_file = Path(tunnel.state_file)
        self.popen = popen
        self.in_use = in_use
        self.alive = alive
        self.kill = kill
        self.sleep = sleep
        self.probe = probe

    def forwards(self) -> List[Forward]:
        t = self.tunnel
        return [
            Forward("OpenSearch", t.opensearch_service, t.opensearch_local_port, t.opensearch_remote_port),
            Forward("Dashboards", t.dashboard_service, t.dashboard_local_port, t.dashboard_remote_port),
        ]

    def _load_state(self) -> Dict[str, Dict[str, int]]:
        if self.state_file.exists():
            with open(self.state_file, "r") as f:
                return json.load(f)
        return {}

    def _save_state(self, data: Dict[str, Dict[str, int]]) -> None:
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.state_file, "w") as f:
            json.dump(data, f, indent=2)

    def start(self) -> Dict[str, int]:
        """Stop existing forwards, then start one per service. Returns PIDs by name."""
        self.stop()
        for forward in self.forwards():
            if self.in_use(forward.local_port):
                raise OsDeployError(
                    f"Port {forward.local_port} is already in use. Please stop existing port forwards first.",
                    hints=[f"lsof -i :{forward.local_port}"],
                )

        state = {}
        for forward in self.forwards():
            proc = self.popen(
                [self.environment.kubectl, "port-forward", f"service/{forward.service}",
                 f"{forward.local_port}:{forward.remote_port}"],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
            state[forward.name] = {"pid": proc.pid, "local_port": forward.local_port}
            logger.info(f"{forward.name} port forwarding started (PID: {proc.pid})")
        self._save_state(state)

        # Give kubectl a moment to bind the local ports
        self.sleep(2)
        return {name: entry["pid"] for name, entry in state.items()}

    def stop(self) -> List[int]:
        """Terminate recorded forwards, escalating to SIGKILL if needed."""
        state = self._load_state()
        pids = [entry["pid"] for entry in state.values() if self.alive(entry["pid"])]
        for pid in pids:
            try:
                self.kill(pid, signal.SIGTERM)
            except ProcessLookupError:
                continue
        if pids:
            self.sleep(2)
            for pid in pids:
                if self.alive(pid):
                    logger.debug(f"Force killing port-forward {pid}")
                    try:
                        self.kill(pid, signal.SIGKILL)
                    except ProcessLookupError:
                        pass
        if self.state_file.exists():
            self.state_file.unlink()
        if pids:
            logger.info("All port forwarding processes have been stopped")
        return pids

    def status(self) -> List[ForwardStatus]:
        statuses = []
        for forward in self.forwards():
            active = self.in_use(forward.local_port)
            health = None
            if active and forward.service == self.tunnel.opensearch_service:
                health = self.probe(
                    f"https://localhost:{forward.local_port}/_cluster/health",
                    auth=(self.health.username, self.health.password),
                )
            statuses.append(ForwardStatus(forward, active, health))
        return statuses
