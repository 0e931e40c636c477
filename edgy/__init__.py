"""Edgy: UX edge-case analysis for design screen trees."""

__version__ = "0.1.0"
