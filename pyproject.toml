[build-system]
requires = ["setuptools>=61"]
build-backend = "setuptools.build_meta"

[project]
name = "butane"
version = "0.8.0"
description = "Typed database values, abstract schema descriptions with diffing, and query expression building"
requires-python = ">=3.10"
dependencies = []
keywords = ["database", "orm", "schema", "sql", "query"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Database",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.setuptools.packages.find]
include = ["butane*"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
