"""Bulk content-location remapping for software-distribution management planes."""
