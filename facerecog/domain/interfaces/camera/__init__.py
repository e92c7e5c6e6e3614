"""Camera interfaces."""
