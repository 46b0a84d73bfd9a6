"""
Workers Package
Background workers for the dispatcher tick
"""
from engagement.workers.dispatcher_worker import DispatcherWorker

__all__ = [
    "DispatcherWorker"
]
