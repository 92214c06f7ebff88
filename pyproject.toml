[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "collectorkit"
version = "0.1.0"
description = "Telemetry collector components: a Carbon (Graphite) metrics receiver, in-process telemetry counters and a Kubernetes pod-tagging configuration model."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "telemetry",
    "metrics",
    "carbon",
    "graphite",
    "receiver",
    "kubernetes",
    "collector",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: System :: Networking :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["collectorkit"]

[tool.hatch.build.targets.sdist]
include = ["collectorkit", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
