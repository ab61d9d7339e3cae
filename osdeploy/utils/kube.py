import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from kubernetes import client, config


def load_kubeconfig(path: Optional[str] = None) -> Optional[str]:
    """
    Load the kubeconfig from a given path, the KUBECONFIG_CONTENT env var,
    or the default location. Returns the actual path used, if known.
    """
    # CI/CD secret-based loading
    if "KUBECONFIG_CONTENT" in os.environ:
        fd, temp_path = tempfile.mkstemp(prefix="osdeploy-kubeconfig-", suffix=".yaml")
        with os.fdopen(fd, "w") as f:
            f.write(os.environ["KUBECONFIG_CONTENT"])
        config.load_kube_config(config_file=temp_path)
        return temp_path

    # Local path loading
    if path:
        resolved = Path(os.path.expanduser(path)).resolve()
        if not resolved.exists():
            raise FileNotFoundError(f"❌ Kubeconfig not found: {resolved}")
        config.load_kube_config(config_file=str(resolved))
        return str(resolved)

    # KUBECONFIG or ~/.kube/config
    config.load_kube_config()
    return os.environ.get("KUBECONFIG")


def node_allocatable(kubeconfig: Optional[str] = None) -> List[Dict[str, str]]:
    """Allocatable resources (memory, cpu, ...) of every node in the cluster."""
    load_kubeconfig(kubeconfig)
    nodes = client.CoreV1Api().list_node().items
    return [dict(node.status.allocatable or {}) for node in nodes]
