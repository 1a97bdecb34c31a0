"""Package marker for the job search API service.

Serves resume-driven job search over the tiered cache and source adapters.
"""

from version import __version__  # noqa: F401
