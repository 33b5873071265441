"""Firewall worker client interface and the queue-backed implementation."""

from captive.worker.client import (
    CounterPair,
    FirewallWorkerClient,
    FirewallBackend,
)
from captive.worker.queued import (
    QueuedFirewallWorker,
    FailedRevocation,
)

__all__ = [
    "CounterPair",
    "FirewallWorkerClient",
    "FirewallBackend",
    "QueuedFirewallWorker",
    "FailedRevocation",
]
