"""impactgraph: cross-repository change-impact analysis over a file dependency graph."""

__version__ = "0.3.0"
