"""PlanSync: offline-first task synchronization core."""

__version__ = "1.0.0"
