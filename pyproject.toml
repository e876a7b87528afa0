[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gitlard"
version = "0.1.0"
description = "Store large files outside a git repository, compatible with git-fat"
requires-python = ">=3.10"
dependencies = []
keywords = ["git", "large files", "git-fat", "rsync", "filter"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Version Control :: Git",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
git-lard = "gitlard.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["gitlard"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
