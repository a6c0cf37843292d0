"""Move data between SQL rows and dataclasses, with pluggable field conversion."""

__version__ = "0.1.0"