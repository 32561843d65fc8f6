"""Control plane gateway client."""

from .client import ControlPlaneClient

__all__ = ["ControlPlaneClient"]
