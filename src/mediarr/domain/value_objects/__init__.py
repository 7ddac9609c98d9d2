"""Domain value objects: naming, release parsing and quality."""
