"""Command-line interface package for hardsub."""
