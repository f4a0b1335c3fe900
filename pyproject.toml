[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tonic"
version = "0.1.0"
description = "Request context, error collection, debug output, content negotiation and file system helpers for an HTTP web framework"
requires-python = ">=3.10"
dependencies = []
keywords = ["http", "web", "framework", "context", "middleware", "content-negotiation", "cookies"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tonic"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
