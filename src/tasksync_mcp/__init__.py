"""Task reconciliation between the process hub and the remote task tracker."""

__version__ = "0.1.0"

__all__ = ["__version__"]
