[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "toyos"
version = "0.1.0"
description = "The file system, buffer cache, journal, pipes and console of a small teaching operating system"
requires-python = ">=3.10"
dependencies = []
keywords = ["filesystem", "journal", "buffer-cache", "inode", "mkfs", "pipe", "console", "teaching"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest", "hypothesis"]

[project.scripts]
toyos-mkfs = "toyos.mkfs:main"
toyos-grep = "toyos.grep:main"

[tool.hatch.build.targets.wheel]
packages = ["toyos"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
