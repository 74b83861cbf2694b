"""Verifier adapters for the proof boundary."""
