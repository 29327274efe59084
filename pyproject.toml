[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "osax"
version = "0.1.0"
description = "A metadata-first object filesystem layered over an in-memory exFAT volume"
requires-python = ">=3.10"
dependencies = []
keywords = ["filesystem", "exfat", "metadata", "objects", "views", "ramdisk"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["osax"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
