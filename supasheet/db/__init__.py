"""Backend collaborators and SQL statement generation."""
