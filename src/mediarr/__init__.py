"""Mediarr - import and organization core for a self-hosted media library."""

__version__ = "0.1.0"
