"""Exploratory analysis and per-entity regression for longitudinal data."""

__version__ = "0.1.0"
