[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "milighthub"
version = "0.1.0"
description = "State tracking, persistence, radio framing, settings and SSDP discovery for MiLight bulb hubs"
requires-python = ">=3.10"
dependencies = []
keywords = ["milight", "limitless", "smart-lighting", "ssdp", "home-automation", "pl1167"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Home Automation",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["milighthub"]

[tool.pytest.ini_options]
addopts = "-ra"
