"""Geodesic ray tracing, tetrads and redshift rendering for curved spacetimes."""

__version__ = "0.1.0"