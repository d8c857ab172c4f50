"""Detached task supervision for the datacenter finder."""

from .instance_lock import InstanceLock, pid_alive, read_pid
from .task_supervisor import BackgroundTask, TaskSupervisor

__all__ = ['InstanceLock', 'pid_alive', 'read_pid', 'BackgroundTask', 'TaskSupervisor']
