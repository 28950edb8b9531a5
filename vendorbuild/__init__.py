"""Batch builder for vendored native source archives."""
