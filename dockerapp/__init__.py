"""Load, validate and render multi-service application definitions."""

__version__ = "0.1.0"
__all__ = ["app", "metadata", "parameters", "render", "specification"]