"""IPv4 routing table stored as a binary trie over address bits."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from ipaddress import IPv4Address
from typing import Optional

from netlayers.routing import AddressLike, NoRouteError, Route, prefix_length

_ANY = IPv4Address(0)


@dataclass
class _Node:
    prefix: int = 0
    prefix_len: int = 0
    route: Optional[Route] = None
    next_hop: IPv4Address = _ANY
    children: list[Optional[_Node]] = field(default_factory=lambda: [None, None])

    def is_empty(self) -> bool:
        return self.route is None and self.children == [None, None]


def _bit(value: int, index: int) -> int:
    return (value >> (31 - index)) & 1


def _normalize(destination: AddressLike, netmask: AddressLike) -> tuple[int, int]:
    mask = int(IPv4Address(netmask))
    return int(IPv4Address(destination)) & mask, prefix_length(mask)


class TrieRoutingTable:
    """Longest-prefix-match routing over a bitwise trie.

    For a direct route (gateway 0.0.0.0) the reported next hop is the
    route's destination network address.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._root = _Node()
        self._local_interfaces: dict[str, IPv4Address] = {}

    def add_route(self, route: Route) -> None:
        """Insert a route, replacing any route with the same prefix."""
        if route is None:
            raise ValueError("route is None")
        prefix, length = _normalize(route.destination, route.netmask)
        next_hop = route.destination if route.gateway == _ANY else route.gateway
        with self._lock:
            node = self._root
            for index in range(length):
                bit = _bit(prefix, index)
                child = node.children[bit]
                if child is None:
                    child = _Node(prefix=prefix, prefix_len=index + 1)
                    node.children[bit] = child
                node = child
            node.route = route
            node.prefix = prefix
            node.prefix_len = length
            node.next_hop = next_hop

    def lookup(self, destination: AddressLike) -> tuple[Route, IPv4Address]:
        """Return the best route for ``destination`` and its next hop."""
        destination = IPv4Address(destination)
        target = int(destination)
        with self._lock:
            best: Optional[_Node] = None
            node: Optional[_Node] = self._root
            index = 0
            while index < 32 and node is not None:
                if node.route is not None:
                    best = node
                node = node.children[_bit(target, index)]
                index += 1
            if node is not None and node.route is not None:
                best = node
            if best is None or best.route is None:
                raise NoRouteError(f"no route to host: {destination}")
            return best.route, best.next_hop

    def remove_route(self, destination: AddressLike, netmask: AddressLike) -> bool:
        """Remove the route for this prefix and prune empty branches."""
        prefix, length = _normalize(destination, netmask)
        with self._lock:
            node: Optional[_Node] = self._root
            path = [self._root]
            for index in range(length):
                node = node.children[_bit(prefix, index)]
                if node is None:
                    return False
                path.append(node)
            if node.route is None:
                return False
            node.route = None
            node.next_hop = _ANY
            if node.children == [None, None]:
                for parent, child in zip(reversed(path[:-1]), reversed(path[1:])):
                    if not child.is_empty():
                        break
                    side = 0 if parent.children[0] is child else 1
                    parent.children[side] = None
            return True

    def add_local_interface(self, name: str, address: AddressLike) -> None:
        """Register the address of a local interface."""
        with self._lock:
            self._local_interfaces[name] = IPv4Address(address)

    def remove_local_interface(self, name: str) -> None:
        """Forget a local interface; unknown names are ignored."""
        with self._lock:
            self._local_interfaces.pop(name, None)

    def routes(self) -> list[Route]:
        """Return all routes in pre-order: shorter prefixes first, 0-bit branch first."""
        found: list[Route] = []
        with self._lock:
            stack: list[_Node] = [self._root]
            while stack:
                node = stack.pop()
                if node.route is not None:
                    found.append(node.route)
                stack.extend(child for child in reversed(node.children) if child)
        return found


class CachedTrieRoutingTable:
    """A :class:`TrieRoutingTable` that remembers successful lookups."""

    def __init__(self) -> None:
        self._table = TrieRoutingTable()
        self._lock = threading.Lock()
        self._cache: dict[int, tuple[Route, IPv4Address]] = {}

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
        key = int(IPv4Address(destination))
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached
        result = self._table.lookup(destination)
        with self._lock:
            self._cache[key] = result
        return result

    def add_local_interface(self, name: str, address: AddressLike) -> None:
        """Register the address of a local interface."""
        self._table.add_local_interface(name, address)

    def remove_local_interface(self, name: str) -> None:
        """Forget a local interface."""
        self._table.remove_local_interface(name)

    def routes(self) -> list[Route]:
        """Return all routes."""
        return self._table.routes()

    def clear_cache(self) -> None:
        """Discard every cached lookup."""
        with self._lock:
            self._cache = {}