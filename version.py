"""
Version information for the job aggregator.

This file is the single source of truth for version numbers.
"""

__version__ = "1.0.0"
__version_info__ = (1, 0, 0)
