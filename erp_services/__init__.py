"""ERP backend services: finance, procurement, project, engineering and identity."""

__version__ = "1.0.0"
