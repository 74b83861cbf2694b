"""Barretenberg verification backend and artifact helpers."""
