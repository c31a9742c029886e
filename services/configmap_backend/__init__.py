"""Terraform http state backend storing state in Kubernetes ConfigMaps."""

__version__ = "0.1.0"
