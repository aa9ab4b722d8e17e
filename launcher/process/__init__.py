from .probe import ReadinessProbe
from .supervisor import ManagedProcess, ProcessState, Supervisor

__all__ = ["ManagedProcess", "ProcessState", "ReadinessProbe", "Supervisor"]
