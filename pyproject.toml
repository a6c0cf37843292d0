[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rowmeddle"
version = "0.1.0"
description = "Move data between SQL rows and Python dataclasses without a full ORM"
requires-python = ">=3.10"
dependencies = []
keywords = ["sql", "dataclasses", "database", "dbapi", "mapping", "sqlite"]
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
    "Topic :: Database :: Front-Ends",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["rowmeddle"]

[tool.pytest.ini_options]
addopts = "-ra"
