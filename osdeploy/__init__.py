"""
OpenSearch on Kubernetes: ordered deployment, certificate-safe teardown
and health verification.
"""

__version__ = "0.1.0"
