"""Background workers for the allocation engine."""

from .expiry_sweep_worker import ExpirySweepWorker

__all__ = ["ExpirySweepWorker"]
