[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "particlerender"
version = "0.1.0"
description = "Depth-sorted, alpha-blended rendering of circular particles into RGB images"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["particles", "rendering", "alpha blending", "rasterisation", "prefix sum"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Multimedia :: Graphics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["particlerender"]

[tool.pytest.ini_options]
addopts = "-ra"
