[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "multinic"
version = "1.2.6"
description = "Multi-NIC CNI helpers: CIDR arithmetic, an IPAM plugin, per-device plugin configs and connection-check tooling"
requires-python = ">=3.10"
dependencies = [
    "psutil",
]
keywords = [
    "cni",
    "ipam",
    "kubernetes",
    "networking",
    "ipvlan",
    "sriov",
    "multi-nic",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
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
test = [
    "pytest",
]

[project.scripts]
multi-nic-ipam = "multinic.ipam_plugin:main"

[tool.hatch.build.targets.wheel]
packages = ["multinic"]

[tool.hatch.build.targets.sdist]
include = [
    "multinic",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
