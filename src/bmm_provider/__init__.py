"""Cluster and machine reconcilers for NVIDIA Bare Metal Manager."""

from .controllers.cluster import ClusterReconciler
from .controllers.common import Result
from .controllers.machine import MachineReconciler

__version__ = "0.1.0"

__all__ = ["ClusterReconciler", "MachineReconciler", "Result"]
