"""timelinemeta - metadata reconciliation for timeline media libraries."""

__version__ = "0.3.0"
