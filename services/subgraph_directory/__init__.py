"""Subgraph directory service."""
