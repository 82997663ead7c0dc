[build-system]
requires = ["setuptools>=64"]
build-backend = "setuptools.build_meta"

[project]
name = "webpool"
version = "0.1.0"
description = "A small HTTP server that answers GET and POST requests from a pool of worker threads"
requires-python = ">=3.10"
dependencies = []
keywords = ["http", "server", "thread-pool", "tcp"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
webpool = "webpool.server:main"

[tool.setuptools.packages.find]
include = ["webpool*"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
