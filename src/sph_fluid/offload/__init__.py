"""
Offload module: acceleration-service backends for the ``physics`` and
``full`` execution modes.
"""

from sph_fluid.offload.host import HostAccelerationService

__all__ = [
    "HostAccelerationService",
]
