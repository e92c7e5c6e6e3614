"""Concrete camera and storage adapters."""
