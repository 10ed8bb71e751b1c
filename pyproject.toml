[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "stratumminer"
version = "1.1.5"
description = "A small Stratum v1 pool client and CPU Bitcoin share miner"
requires-python = ">=3.10"
dependencies = []
keywords = ["bitcoin", "stratum", "mining", "sha256", "pool"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
stratumminer = "stratumminer.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["stratumminer"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
