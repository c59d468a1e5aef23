[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tabchat"
version = "0.1.0"
description = "A small multi-client TCP chat server with a tab-separated message protocol, private messages and file relay."
requires-python = ">=3.10"
dependencies = []
keywords = ["chat", "tcp", "server", "socket", "file-transfer"]
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
    "Topic :: Communications :: Chat",
    "Topic :: Internet",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
tabchat-server = "tabchat.server:main"

[tool.hatch.build.targets.wheel]
packages = ["tabchat"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
