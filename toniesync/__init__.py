"""Synchronize locally managed audio content onto Creative Tonies."""

__version__ = "0.1.0"
