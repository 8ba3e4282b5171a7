[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "canlink"
version = "0.1.0"
description = "CAN bus frames, text notation, filters, dispatchers, SocketCAN drivers and an in-process dummy bus"
requires-python = ">=3.10"
dependencies = []
keywords = ["can", "socketcan", "canbus", "bcm", "candump", "embedded", "fieldbus"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems :: Controller Area Network (CAN)",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
canbcm = "canlink.bcm:main"
candump = "canlink.candump:main"

[tool.hatch.build.targets.wheel]
packages = ["canlink"]

[tool.pytest.ini_options]
addopts = "-ra"
