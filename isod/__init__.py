"""Download sources, version detection, distribution definitions and Ventoy USB devices."""

__version__ = "0.1.0"