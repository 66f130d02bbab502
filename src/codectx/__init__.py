"""codectx - budgeted code-context retrieval over a file dependency graph."""

__version__ = "0.1.0"
