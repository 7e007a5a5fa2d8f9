"""
Device discovery.

Provides subnet resolution and the network scanners that find Android TV
endpoints and Cast receivers.
"""

from .subnet import SubnetInfo, SubnetResolver, compute_subnet

__all__ = [
    "SubnetInfo",
    "SubnetResolver",
    "compute_subnet",
]
