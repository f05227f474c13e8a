"""Error types raised by the episode detection library."""
from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised when inputs or settings make a run impossible.

    Covers missing input columns, per-row override vectors whose length does not
    match the input table, invalid detection parameters and malformed
    configuration files. Data-quality problems (missing glucose values,
    unordered timestamps) are never reported through this error.
    """
