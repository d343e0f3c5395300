[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "waferalign"
version = "0.1.0"
description = "Image alignment pipelines, composite algorithms and visual stress-testing for wafer inspection images"
requires-python = ">=3.10"
keywords = [
    "image alignment",
    "template matching",
    "ransac",
    "pipeline",
    "semiconductor",
    "sem",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Processing",
]
dependencies = [
    "numpy>=1.23",
    "scipy>=1.9",
    "pillow>=9.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[tool.hatch.build.targets.wheel]
packages = ["waferalign"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
