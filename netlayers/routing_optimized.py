"""IPv4 routing tables that keep routes sorted by prefix, with optional caching."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from ipaddress import IPv4Address
from typing import Optional

from netlayers.routing import AddressLike, NoRouteError, Route, prefix_length

_ANY = IPv4Address(0)


@dataclass(frozen=True)
class _SortedEntry:
    route: Route
    prefix_len: int
    network: int
    mask: int


class OptimizedRoutingTable:
    """Routing table whose lookup scans routes ordered longest prefix first.

    Among routes with equal prefix length the lower metric wins.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._routes: list[Route] = []
        self._sorted: list[_SortedEntry] = []
        self._default_gateway: Optional[Route] = None
        self._local_interfaces: dict[str, IPv4Address] = {}
        self._dirty = False

    def add_route(self, route: Route) -> None:
        """Add a route; a 0.0.0.0/0 route becomes the default gateway."""
        if route is None:
            raise ValueError("route is None")
        with self._lock:
            if route.is_default:
                self._default_gateway = route
            self._routes.append(route)
            self._dirty = True

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
                    self._dirty = True
                    return True
        return False

    def _rebuild(self) -> None:
        entries = [
            _SortedEntry(
                route=route,
                prefix_len=prefix_length(route.netmask),
                network=int(route.destination) & int(route.netmask),
                mask=int(route.netmask),
            )
            for route in self._routes
        ]
        entries.sort(key=lambda entry: (-entry.prefix_len, entry.route.metric))
        self._sorted = entries
        self._dirty = False

    def lookup(self, destination: AddressLike) -> tuple[Route, IPv4Address]:
        """Return the best route for ``destination`` and the next hop address."""
        destination = IPv4Address(destination)
        target = int(destination)
        with self._lock:
            if self._dirty:
                self._rebuild()
            for entry in self._sorted:
                if target & entry.mask == entry.network:
                    gateway = entry.route.gateway
                    next_hop = destination if gateway == _ANY else gateway
                    return entry.route, next_hop
        raise NoRouteError(f"no route to host: {destination}")

    def add_local_interface(self, name: str, address: AddressLike) -> None:
        """Register the address of a local interface."""
        with self._lock:
            self._local_interfaces[name] = IPv4Address(address)

    def remove_local_interface(self, name: str) -> None:
        """Forget a local interface; unknown names are ignored."""
        with self._lock:
            self._local_interfaces.pop(name, None)

    def routes(self) -> list[Route]:
        """Return a copy of the route list in insertion order."""
        with self._lock:
            return list(self._routes)


class CachedRoutingTable:
    """An :class:`OptimizedRoutingTable` that remembers successful lookups."""

    def __init__(self) -> None:
        self._table = OptimizedRoutingTable()
        self._lock = threading.Lock()
        self._cache: dict[IPv4Address, tuple[Route, IPv4Address]] = {}

    def add_route(self, route: Route) -> None:
        """Add a route and invalidate the cache."""
        self._table.add_route(route)
        self.clear_cache()

    def remove_route(self, destination: AddressLike, netmask: AddressLike) -> bool:
        """Remove a route; the cache is invalidated if one was removed."""
        removed = self._table.remove_route(destination, netmask)
        if removed:
            self.clear_cache()
        return removed

    def lookup(self, destination: AddressLike) -> tuple[Route, IPv4Address]:
        """Return the cached result or look the destination up and cache it."""
        destination = IPv4Address(destination)
        with self._lock:
            cached = self._cache.get(destination)
        if cached is not None:
            return cached
        result = self._table.lookup(destination)
        with self._lock:
            self._cache[destination] = result
        return result

    def add_local_interface(self, name: str, address: AddressLike) -> None:
        """Register the address of a local interface."""
        self._table.add_local_interface(name, address)

    def remove_local_interface(self, name: str) -> None:
        """Forget a local interface."""
        self._table.remove_local_interface(name)

    def routes(self) -> list[Route]:
        """Return a copy of the route list."""
        return self._table.routes()

    def clear_cache(self) -> None:
        """Discard every cached lookup."""
        with self._lock:
            self._cache = {}