"""jsonpost: POST JSON built from templates and route work items by response status."""

__version__ = "0.1.0"
