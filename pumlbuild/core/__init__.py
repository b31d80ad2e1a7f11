"""Domain models, errors and project files."""
