"""Helpers shared across osdeploy modules."""
from .kube import load_kubeconfig, node_allocatable

__all__ = ['load_kubeconfig', 'node_allocatable']
