# capture/scapy_sniffer.py
import errno
import logging
from typing import AbstractSet, Any, Mapping, Optional

from scapy.error import Scapy_Exception
from scapy.layers.l2 import Ether
from scapy.sendrecv import sniff

from exceptions import CaptureError
from utils import build_capture_filter, format_mac
from .base import BaseCapture

logger = logging.getLogger(__name__)


class ScapySniffer(BaseCapture):
    """Implementation of BaseCapture on top of scapy's sniff().

    sniff() opens its own capture socket per call and closes it before
    returning, also when it raises, so no handle outlives a listen() call.
    """

    def __init__(self, config: Mapping[str, Any]):
        self.config = config
        self.interface = config.get("interface") or None

    def listen(self, addresses: AbstractSet[str], budget: float) -> Optional[str]:
        """Sniffs for at most `budget` seconds and returns the first matching address."""
        if not addresses:
            raise ValueError("listen() needs at least one address")
        wanted = {format_mac(address) for address in addresses}
        bpf = build_capture_filter(wanted)
        logger.debug("Listening %ss on %s with filter: %s", budget, self.interface or "default interface", bpf)

        try:
            packets = sniff(filter=bpf, iface=self.interface, count=1, timeout=budget, store=True)
        except (OSError, Scapy_Exception) as err:
            if isinstance(err, OSError) and err.errno in (errno.EPERM, errno.EACCES):
                raise CaptureError("Not permitted to capture packets (run as root or grant CAP_NET_RAW)",
                                   {"interface": self.interface, "error": err}) from err
            raise CaptureError("Packet capture unavailable",
                               {"interface": self.interface, "error": err}) from err

        if not packets:
            return None
        return self._match_address(packets[0], wanted)

    def _match_address(self, packet, wanted: AbstractSet[str]) -> Optional[str]:
        """Returns whichever of the frame's source or destination is being listened for."""
        if Ether not in packet:
            logger.debug("Captured frame without an Ethernet header: %s", packet.summary())
            return None
        ether = packet[Ether]
        for mac in (ether.src, ether.dst):
            if mac and format_mac(mac) in wanted:
                return format_mac(mac)
        logger.debug("Captured frame %s -> %s matched no listened address", ether.src, ether.dst)
        return None
