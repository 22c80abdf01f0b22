[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "statushub"
version = "0.1.0"
description = "Status service for a chat system: assigns chat servers, stores login tokens and provides Redis and MySQL helpers"
requires-python = ">=3.10"
keywords = ["chat", "status", "redis", "mysql", "load-balancing", "distributed-lock"]
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
    "Topic :: Communications :: Chat",
    "Topic :: Database",
]
dependencies = [
    "redis",
    "pymysql",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["statushub"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
