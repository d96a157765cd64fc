[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "solvejudge"
version = "0.1.0"
description = "Building blocks for a programming-contest judge: sandboxed compilation and execution, a leased task queue, role-based permissions and contest standings."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "judge",
    "contest",
    "competitive-programming",
    "sandbox",
    "cgroups",
    "standings",
    "task-queue",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["solvejudge"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
