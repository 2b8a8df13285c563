"""IPv4 routing table with longest-prefix-match lookup."""

from __future__ import annotations

import socket
import threading
from dataclasses import dataclass, field
from ipaddress import IPv4Address
from typing import Optional, Union

import psutil

AddressLike = Union[IPv4Address, str, int, bytes]

_ANY = IPv4Address(0)


class NoRouteError(LookupError):
    """Raised when no route matches a destination."""


@dataclass
class Route:
    """A routing table entry; a gateway of 0.0.0.0 means direct delivery."""

    destination: IPv4Address
    netmask: IPv4Address
    gateway: IPv4Address = field(default_factory=lambda: IPv4Address(0))
    interface: str = ""
    metric: int = 0

    def __post_init__(self) -> None:
        self.destination = IPv4Address(self.destination)
        self.netmask = IPv4Address(self.netmask)
        self.gateway = IPv4Address(self.gateway)

    @property
    def is_default(self) -> bool:
        """True for the 0.0.0.0/0 route."""
        return self.destination == _ANY and self.netmask == _ANY


def matches(address: AddressLike, network: AddressLike, netmask: AddressLike) -> bool:
    """Return True if ``address`` lies in ``network`` under ``netmask``."""
    mask = int(IPv4Address(netmask))
    return int(IPv4Address(address)) & mask == int(IPv4Address(network)) & mask


def prefix_length(netmask: AddressLike) -> int:
    """Return the number of one bits in ``netmask``."""
    return bin(int(IPv4Address(netmask))).count("1")


class RoutingTable:
    """A list of routes searched by longest prefix; the earliest route wins ties."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._routes: list[Route] = []
        self._default_gateway: Optional[Route] = None
        self._local_interfaces: dict[str, IPv4Address] = {}

    def add_route(self, route: Route) -> None:
        """Append a route; a 0.0.0.0/0 route becomes the default gateway."""
        if route is None:
            raise ValueError("route is None")
        with self._lock:
            if route.is_default:
                self._default_gateway = route
            self._routes.append(route)

    def remove_route(self, destination: AddressLike, netmask: AddressLike) -> bool:
        """Remove the first route with this destination and netmask."""
        destination = IPv4Address(destination)
        netmask = IPv4Address(netmask)
        with self._lock:
            for index, route in enumerate(self._routes):
                if route.destination == destination and route.netmask == netmask:
                    del self._routes[index]
                    if self._default_gateway is route:
                        self._default_gateway = None
                    return True
        return False

    def lookup(self, destination: AddressLike) -> tuple[Route, IPv4Address]:
        """Return the best route for ``destination`` and the next hop address."""
        destination = IPv4Address(destination)
        with self._lock:
            best: Optional[Route] = None
            best_length = -1
            for route in self._routes:
                if matches(destination, route.destination, route.netmask):
                    length = prefix_length(route.netmask)
                    if length > best_length:
                        best, best_length = route, length
        if best is None:
            raise NoRouteError(f"no route to host: {destination}")
        next_hop = destination if best.gateway == _ANY else best.gateway
        return best, next_hop

    def set_default_gateway(self, gateway: AddressLike, interface: str) -> None:
        """Add a 0.0.0.0/0 route through ``gateway``."""
        self.add_route(
            Route(
                destination=_ANY,
                netmask=_ANY,
                gateway=IPv4Address(gateway),
                interface=interface,
                metric=0,
            )
        )

    def default_gateway(self) -> Optional[Route]:
        """Return the default route, or None if there is none."""
        with self._lock:
            return self._default_gateway

    def add_local_interface(self, name: str, address: AddressLike) -> None:
        """Register the address of a local interface."""
        with self._lock:
            self._local_interfaces[name] = IPv4Address(address)

    def get_local_interface(self, name: str) -> Optional[IPv4Address]:
        """Return the address of a local interface, or None if unknown."""
        with self._lock:
            return self._local_interfaces.get(name)

    def is_local_address(self, address: AddressLike) -> bool:
        """Return True if ``address`` belongs to a local interface."""
        address = IPv4Address(address)
        with self._lock:
            return address in self._local_interfaces.values()

    def routes(self) -> list[Route]:
        """Return a copy of the route list."""
        with self._lock:
            return list(self._routes)

    def __str__(self) -> str:
        lines = [
            "Routing Table:",
            "Destination     Netmask         Gateway         Interface  Metric",
            "-" * 67,
        ]
        with self._lock:
            for route in self._routes:
                gateway = "direct" if route.gateway == _ANY else str(route.gateway)
                lines.append(
                    f"{str(route.destination):<15} {str(route.netmask):<15} "
                    f"{gateway:<15} {route.interface:<10} {route.metric}"
                )
        return "\n".join(lines) + "\n"

    def load_system_routes(self) -> None:
        """Add direct routes and local addresses for the host's IPv4 interfaces."""
        try:
            interfaces = psutil.net_if_addrs()
        except OSError as exc:
            raise OSError(f"failed to get interfaces: {exc}") from exc

        for name, addresses in interfaces.items():
            for entry in addresses:
                if entry.family != socket.AF_INET:
                    continue
                try:
                    local = IPv4Address(entry.address)
                    netmask = IPv4Address(entry.netmask or 0)
                except ValueError:
                    continue
                self.add_local_interface(name, local)
                network = IPv4Address(int(local) & int(netmask))
                self.add_route(
                    Route(
                        destination=network,
                        netmask=netmask,
                        gateway=_ANY,
                        interface=name,
                        metric=0,
                    )
                )