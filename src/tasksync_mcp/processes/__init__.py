"""Process registry models and loader exports."""

from .loader import ProcessRegistry, ProcessRegistryError, load_processes
from .models import ProcessLink

__all__ = [
    "ProcessLink",
    "ProcessRegistry",
    "ProcessRegistryError",
    "load_processes",
]
