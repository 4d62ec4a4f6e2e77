[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "c4id"
version = "0.8.0"
description = "C4 IDs (SMPTE ST 2114:2017): base-58 encoded SHA-512 identifiers, ID trees and a small key/link store"
requires-python = ">=3.10"
dependencies = []
keywords = ["c4", "c4id", "sha512", "identifier", "hash", "merkle", "smpte"]
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
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Topic :: System :: Filesystems",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
c4 = "c4id.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["c4id"]

[tool.pytest.ini_options]
addopts = "-ra"
