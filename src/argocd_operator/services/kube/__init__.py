"""Cluster access for the operator."""

from .base import ClusterClient
from .client import KubernetesClusterClient, load_kube_config
from .discovery import FeatureProbe

__all__ = ["ClusterClient", "KubernetesClusterClient", "FeatureProbe", "load_kube_config"]
