"""Payroll console: calculation and finalization workflow."""

__version__ = "0.1.0"
