[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "spacetime-kernels"
version = "0.1.0"
description = "Geodesic ray tracing, tetrads and redshift rendering for curved spacetimes"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "general relativity",
    "geodesics",
    "ray tracing",
    "black holes",
    "schwarzschild",
    "tetrads",
    "redshift",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Physics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["spacetime_kernels"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
