"""Helpers for testing code built on testweave."""
