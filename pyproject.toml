[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kasrotation"
version = "0.1.0"
description = "Certificate rotation planning, serving hostname tracking, upgradeable condition and config metrics for a Kubernetes API server operator"
requires-python = ">=3.10"
dependencies = []
keywords = ["kubernetes", "certificates", "rotation", "operator", "metrics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["kasrotation"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
