[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "loadstone_config"
version = "0.1.0"
description = "Configuration model and source generation for Loadstone bootloader builds"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = [
    "bootloader",
    "embedded",
    "code generation",
    "linker script",
    "firmware",
    "stm32",
    "efm32",
    "ron",
]
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
    "Topic :: Software Development :: Code Generators",
    "Topic :: Software Development :: Embedded Systems",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
loadstone-config = "loadstone_config.build:main"

[tool.hatch.build.targets.wheel]
packages = ["loadstone_config"]

[tool.hatch.build.targets.sdist]
include = [
    "loadstone_config",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
