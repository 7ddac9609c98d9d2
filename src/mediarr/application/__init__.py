"""Application layer - import, organize and scan services."""
