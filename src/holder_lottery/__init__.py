"""Recurring token-holder lottery: ticket allocation, draw lifecycle and pipeline."""

__version__ = "1.0.0"
