"""Recognition interfaces."""
