[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "eveship"
version = "0.1.0"
description = "Distil network data points from Suricata EVE events and ship JSON to Elasticsearch, files and named pipes"
requires-python = ">=3.10"
keywords = ["suricata", "eve", "elasticsearch", "opensearch", "network monitoring", "ndp"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["eveship"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
