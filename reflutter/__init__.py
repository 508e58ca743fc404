"""Flutter application analysis and repackaging: engine lookup, patching, config and helpers."""

__version__ = "0.8.4"