"""Import pipeline and table administration services."""
