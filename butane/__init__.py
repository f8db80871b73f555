"""Typed database values, abstract schema descriptions and diffs, and query expression building."""

__version__ = "0.8.0"