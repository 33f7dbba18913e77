[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dockerapp"
version = "0.1.0"
description = "Load, validate and render multi-service application definitions with parameter substitution"
requires-python = ">=3.10"
keywords = ["compose", "application", "parameters", "rendering", "metadata", "yaml"]
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
    "Topic :: Software Development :: Build Tools",
]
dependencies = [
    "pyyaml",
    "jsonschema",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["dockerapp"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
