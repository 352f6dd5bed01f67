[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "osmem"
version = "0.1.0"
description = "A simulated memory allocator (malloc, calloc, realloc, free) over a virtual brk heap and mmap regions, with a compact printf-style formatter."
requires-python = ">=3.10"
dependencies = []
keywords = ["allocator", "malloc", "heap", "memory", "sbrk", "mmap", "printf", "simulation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["osmem"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
