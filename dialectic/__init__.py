"""Dialectic - dependency upgrade planning, application and recovery."""

__version__ = "0.1.0"
