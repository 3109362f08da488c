"""Dependency-batch scheduling for beads epics."""

__version__ = "0.3.0"
