"""IPv4/IPv6 packets, fragmentation, routing tables, IGMP/MLD multicast and simplified QUIC."""

__version__ = "0.1.0"