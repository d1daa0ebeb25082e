"""
This module initializes the external binary provisioning system.
It exposes the `BinaryProvisioner` class and its `ProvisionError`.
"""

from .external import BinaryProvisioner, ProvisionError

__all__ = ["BinaryProvisioner", "ProvisionError"]
