[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fastchess"
version = "1.4.0"
description = "Building blocks for driving UCI chess engines: engine processes, options, time controls, CPU affinity and opening books."
requires-python = ">=3.10"
dependencies = []
keywords = ["chess", "uci", "engine", "opening book", "time control", "affinity"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment :: Board Games",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
fastchess-compliance = "fastchess.compliance:main"

[tool.hatch.build.targets.wheel]
packages = ["fastchess"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
