[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lenet5"
version = "0.1.0"
description = "A small LeNet-5 convolutional network for handwritten digit recognition"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["lenet", "lenet-5", "cnn", "mnist", "digit recognition", "neural network"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Recognition",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = [
    "pytest",
    "numpy",
]

[project.scripts]
lenet5 = "lenet5.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["lenet5"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
