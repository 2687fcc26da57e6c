"""Utility helpers shared across hardsub modules."""
