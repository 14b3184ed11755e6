[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "twccfeedback"
version = "0.1.0"
description = "Transport-wide congestion control (TWCC) feedback recording and RTCP packet building"
requires-python = ">=3.10"
dependencies = []
keywords = ["rtp", "rtcp", "twcc", "congestion-control", "webrtc"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: System :: Networking",
    "Topic :: Communications",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["twccfeedback"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
