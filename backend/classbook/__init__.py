"""Typed gateways over the Apper record service for students, classes, grades and attendance."""

__version__ = "1.0.0"
