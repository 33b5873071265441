"""
Firewall worker interfaces.

Defines the two ABCs the session layer is written against:
- FirewallWorkerClient: what the session controllers call
- FirewallBackend: what actually manipulates packet filters and shapers

Design:
- Two concurrency contracts, never one call with a "don't wait" flag:
  * synchronous request/response (admit, counter reads), timeout-bounded
  * asynchronous enqueue-only (revoke), safe from inside the worker itself
- Error handling: WorkerUnavailableError (timeout, unreachable) and
  WorkerError (instruction executed and failed), never silent failures
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

CounterPair = Tuple[int, int]


class FirewallWorkerClient(ABC):
    """
    Client handle to the firewall/traffic-shaping worker.

    Session controllers receive an instance at construction time; nothing
    looks the worker up from ambient state.
    """

    @abstractmethod
    def admit(
        self,
        interface: str,
        ip_address: str,
        mac_address: str,
        max_upload_bandwidth: Optional[float] = None,
        max_download_bandwidth: Optional[float] = None,
    ) -> None:
        """
        Let a client pass through the firewall and wait for the acknowledgment.

        Args:
            interface: Captive portal interface the rule belongs to
            ip_address: Client IPv4 address
            mac_address: Client MAC address
            max_upload_bandwidth: Optional upload cap handed to the shaper
            max_download_bandwidth: Optional download cap handed to the shaper

        Raises:
            WorkerUnavailableError: Timed out or worker not reachable
            WorkerError: Worker rejected or failed the instruction

        Note:
            - Blocks the caller for at most the configured worker timeout
            - Must not be called from the worker's own execution context
        """
        raise NotImplementedError

    @abstractmethod
    def revoke_async(self, interface: str, ip_address: str, mac_address: str) -> None:
        """
        Enqueue removal of a client's firewall admission.

        Returns as soon as the instruction is queued. Failures are retried and
        reported by the worker; they never reach the caller. An admit for the
        same client submitted after this call supersedes the revoke: a revoke
        still pending (or waiting to retry) at that point is dropped.

        Args:
            interface: Captive portal interface the rule belongs to
            ip_address: Client IPv4 address
            mac_address: Client MAC address
        """
        raise NotImplementedError

    @abstractmethod
    def get_byte_counters(self, interface: str, ip_address: str, mac_address: str) -> CounterPair:
        """
        Read cumulative octet counters for an admitted client.

        Returns:
            (uploaded_octets, downloaded_octets)

        Raises:
            WorkerUnavailableError: Timed out or worker not reachable
            WorkerError: Worker failed to read the counters
        """
        raise NotImplementedError

    @abstractmethod
    def get_packet_counters(self, interface: str, ip_address: str, mac_address: str) -> CounterPair:
        """
        Read cumulative packet counters for an admitted client.

        Returns:
            (uploaded_packets, downloaded_packets)

        Raises:
            WorkerUnavailableError: Timed out or worker not reachable
            WorkerError: Worker failed to read the counters
        """
        raise NotImplementedError


class FirewallBackend(ABC):
    """
    Enforcement engine driven by a worker.

    Implementations talk to the kernel packet filter and shaper. Each method
    is called from the worker thread only, one instruction at a time.
    """

    @abstractmethod
    def add_user(
        self,
        cp_interface: str,
        address: str,
        mac: str,
        max_upload_bandwidth: Optional[float] = None,
        max_download_bandwidth: Optional[float] = None,
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def remove_user(self, cp_interface: str, address: str, mac: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_user_bytes_counters(self, cp_interface: str, address: str, mac: str) -> CounterPair:
        raise NotImplementedError

    @abstractmethod
    def get_user_packets_counters(self, cp_interface: str, address: str, mac: str) -> CounterPair:
        raise NotImplementedError
