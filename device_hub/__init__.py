"""
Device Hub - multi-protocol device discovery and control.
"""

__version__ = "0.1.0"
