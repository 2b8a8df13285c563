[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "netlayers"
version = "0.1.0"
description = "IPv4/IPv6 packets, fragmentation, routing tables, IGMP/MLD multicast and simplified QUIC framing"
requires-python = ">=3.10"
keywords = [
    "ipv4",
    "ipv6",
    "routing",
    "fragmentation",
    "igmp",
    "mld",
    "multicast",
    "quic",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]
dependencies = [
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["netlayers"]

[tool.pytest.ini_options]
addopts = "-ra"
