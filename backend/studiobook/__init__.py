"""Studio booking policy and shift availability engine."""

__version__ = "0.1.0"
