"""Frame annotation and the local preview window."""
