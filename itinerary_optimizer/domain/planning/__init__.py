"""Deterministic, I/O-free planning stages."""
