[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mcagent"
version = "0.8.0"
description = "Core of a container monitoring agent: configuration loading, check plugins, host registration and ECS task metadata types"
requires-python = ">=3.10"
keywords = [
    "monitoring",
    "containers",
    "agent",
    "check-plugins",
    "ecs",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]
dependencies = [
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "pytest-asyncio>=0.21",
]

[tool.hatch.build.targets.wheel]
packages = ["mcagent"]

[tool.hatch.build.targets.sdist]
include = [
    "mcagent",
    "tests",
    "README.md",
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
