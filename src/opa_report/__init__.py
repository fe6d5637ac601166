"""
OPA Report - Version reporting and update checks against the OPA telemetry service.

Sends the running version to a telemetry endpoint and reports whether a
newer upstream release is available.
"""

__version__ = "0.38.1"
__author__ = "The OPA Authors"

__all__ = ["__version__"]
