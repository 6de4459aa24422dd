"""Certificate rotation specs and controller, serving hostnames, upgradeable condition and config metrics for a Kubernetes API server operator."""

__version__ = "0.1.0"
__all__ = ["__version__"]