"""Coach assignment and revenue settlement engine."""

__version__ = "0.1.0"
