[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dqcluster"
version = "0.1.0"
description = "Role management, node state files, TLS helpers, connection proxying and a key/value benchmark for clusters of replicated SQLite nodes"
requires-python = ">=3.10"
keywords = ["sqlite", "raft", "cluster", "replication", "benchmark", "proxy", "tls"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Operating System :: MacOS",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
]
dependencies = [
    "pyyaml",
    "psutil",
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["dqcluster"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
