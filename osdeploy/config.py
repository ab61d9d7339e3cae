"""Configuration management for the osdeploy application.

Configuration is loaded from multiple sources with the following precedence:
1. Explicitly passed command-line options
2. Environment variables (optionally from a .env file)
3. Configuration file
4. Default values
"""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Load environment variables from .env file if it exists
load_dotenv()

logger = logging.getLogger("osdeploy.config")


class Config:
    """Process-wide defaults taken from the environment."""

    LOG_LEVEL: str = os.getenv("OSDEPLOY_LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv(
        "OSDEPLOY_LOG_FORMAT",
        "[%(asctime)s] %(levelname)s: %(message)s"
    )
    LOG_DATEFMT: str = "%Y-%m-%d %H:%M:%S"

    CONFIG_PATH: str = os.getenv("OSDEPLOY_CONFIG", "")
    MANIFEST_DIR: str = os.getenv("OSDEPLOY_MANIFEST_DIR", ".")
    BACKUP_ROOT: str = os.getenv("OSDEPLOY_BACKUP_ROOT", "/tmp")
    KUBECTL: str = os.getenv("OSDEPLOY_KUBECTL", "")

    # Upper bound for a single kubectl round trip (seconds)
    COMMAND_TIMEOUT: int = int(os.getenv("OSDEPLOY_COMMAND_TIMEOUT", "120"))

    # Tools tried in order when OSDEPLOY_KUBECTL is not set
    KUBECTL_CANDIDATES: Tuple[str, ...] = ("kubectl", "microk8s.kubectl")


DEFAULT_CONFIG_PATHS = [
    Path("osdeploy.yaml").absolute(),
    Path("~/.config/osdeploy/config.yaml").expanduser(),
]


class TimeoutConfig(BaseModel):
    """Readiness and settle windows, in seconds."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    readiness: float = Field(default=300, description="Default readiness gate timeout")
    certificate_job: float = Field(default=60, description="Certificate generation job timeout")
    helper_pod: float = Field(default=30, description="Backup helper pod startup timeout")
    settle_delay: float = Field(default=30, description="Delay before the health check")
    poll_interval: float = Field(default=5, description="Readiness polling interval")
    stale_grace: float = Field(default=10, description="Cancellation window before stale cleanup")
    deletion_settle: float = Field(default=5, description="Pause after deletions")

    @field_validator("readiness", "certificate_job", "helper_pod", "poll_interval")
    @classmethod
    def must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v


class CapacityConfig(BaseModel):
    """Minimums checked during preflight."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    min_memory_gib: float = 8
    min_cpu_cores: float = 4
    min_max_map_count: int = 262144


class HealthConfig(BaseModel):
    """How the cluster health endpoint is reached."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    node_selector: str = "io.kompose.service=os01"
    url: str = "https://localhost:9200/_cluster/health"
    username: str = "admin"
    password: str = "admin"


class TunnelConfig(BaseModel):
    """Local port-forward mappings."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    opensearch_service: str = "os01"
    opensearch_local_port: int = 29201
    opensearch_remote_port: int = 9200
    dashboard_service: str = "kibana"
    dashboard_local_port: int = 25602
    dashboard_remote_port: int = 5601
    state_file: str = "~/.cache/osdeploy/port-forward.json"

    @field_validator("state_file")
    @classmethod
    def expand_state_file(cls, v: str) -> str:
        """Expand the user home directory in the state file path."""
        return os.path.expanduser(v)


class CertificateConfig(BaseModel):
    """Names used by the certificate backup protocol."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    claim: str = "certificates-pvc"
    volume: str = "certificates-pv"
    job: str = "generate-certificates"
    helper_pod: str = "cert-backup"
    helper_image: str = "busybox"
    mount_path: str = "/certs"
    ca_dir: str = "ca"


class ServiceConfig(BaseModel):
    """Identity of the OpenSearch components."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    nodes: List[str] = Field(default_factory=lambda: ["os01", "os02", "os03"])
    dashboard: str = "kibana"
    component_label: str = "io.kompose.service"
    dashboard_url: str = "https://localhost:5601"

    @field_validator("nodes")
    @classmethod
    def at_least_one_node(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("at least one OpenSearch node is required")
        return v


class DeployerConfig(BaseModel):
    """Complete deployer configuration."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    capacity: CapacityConfig = Field(default_factory=CapacityConfig)
    health: HealthConfig = Field(default_factory=HealthConfig)
    tunnel: TunnelConfig = Field(default_factory=TunnelConfig)
    certificates: CertificateConfig = Field(default_factory=CertificateConfig)
    service: ServiceConfig = Field(default_factory=ServiceConfig)

    @classmethod
    def load(cls, config_path: Optional[Union[str, Path]] = None) -> 'DeployerConfig':
        """Load configuration from the first config file found, else defaults."""
        config_path = config_path or Config.CONFIG_PATH or None
        if config_path:
            path = Path(config_path).expanduser().absolute()
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {path}")
            return cls(**cls._load_config_file(path))

        for path in DEFAULT_CONFIG_PATHS:
            path = path.expanduser().absolute()
            if path.exists():
                logger.debug(f"Loading configuration from {path}")
                return cls(**cls._load_config_file(path))
        return cls()

    @classmethod
    def _load_config_file(cls, path: Path) -> Dict[str, Any]:
        """Load configuration from a YAML file."""
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Invalid config format in {path}: expected mapping, got {type(data).__name__}")
        return data

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.model_dump(), default_flow_style=False, sort_keys=False)

    def save(self, path: Union[str, Path]) -> Path:
        """Save configuration to a file."""
        path = Path(path).expanduser().absolute()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            f.write(self.to_yaml())
        return path


@dataclass(frozen=True)
class Environment:
    """Resolved tool binding and manifest search path."""
    kubectl: str
    manifest_dir: Path = field(default_factory=lambda: Path(Config.MANIFEST_DIR))

    def manifest_path(self, manifest: str) -> Path:
        return self.manifest_dir / manifest


@dataclass(frozen=True)
class RunOptions:
    """Options for a single run, built once from parsed arguments."""
    cleanup: bool = False
    force: bool = False
    skip_backup: bool = False
    minimal: bool = False
    dry_run: bool = False
    manifest_dir: Path = field(default_factory=lambda: Path(Config.MANIFEST_DIR))
    backup_root: Path = field(default_factory=lambda: Path(Config.BACKUP_ROOT))
