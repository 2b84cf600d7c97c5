[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "framenet"
version = "0.1.0"
description = "Framed TCP messaging server, a small HTTP server and a WebSocket echo server built on asyncio"
requires-python = ">=3.10"
dependencies = [
    "websockets",
]
keywords = [
    "tcp",
    "asyncio",
    "framing",
    "protocol",
    "websocket",
    "http",
    "server",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Framework :: AsyncIO",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "websockets",
]

[project.scripts]
framenet-server = "framenet.server:main"
framenet-http = "framenet.http_server:main"
framenet-websocket = "framenet.websocket_server:main"

[tool.hatch.build.targets.wheel]
packages = ["framenet"]

[tool.hatch.build.targets.sdist]
include = [
    "framenet",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
