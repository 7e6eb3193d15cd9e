[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pacrelay"
version = "1.4.0"
description = "Local PAC file server, GFWList rule builder and HTTP-to-SOCKS5 relay"
requires-python = ">=3.10"
dependencies = []
keywords = ["pac", "proxy", "socks5", "gfwlist", "http-proxy", "proxy-auto-config"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[project.scripts]
pacrelay = "pacrelay.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["pacrelay"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
