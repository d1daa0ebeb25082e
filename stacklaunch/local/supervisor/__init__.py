"""
The Supervisor package.
Manages the lifecycle of the service stack's subprocesses.

This package contains the central ProcessManager class and its helper modules,
which together handle provisioning, ordered startup, tracking and shutdown of
all services.
"""
from .supervisor import ProcessManager

__all__ = ['ProcessManager']
