[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xdputil"
version = "1.5.3"
description = "Helpers for XDP tooling: PcapNG writing, statistics, logging, bpffs and lock handling"
requires-python = ">=3.10"
dependencies = []
keywords = ["xdp", "bpf", "pcapng", "networking", "statistics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["xdputil"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
