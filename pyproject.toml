[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "delaywheel"
version = "0.1.0"
description = "Building blocks for a delayed, cyclic task timer: task instances, handles, timeout sweeping and a timing wheel clock."
requires-python = ">=3.10"
dependencies = []
keywords = ["timer", "scheduler", "timing-wheel", "asyncio", "tasks", "cancellation"]
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
    "Framework :: AsyncIO",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["delaywheel"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
