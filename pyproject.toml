[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dsptest"
version = "0.1.2"
description = "Interactive test bench for audio DSP modules: signal generators in, live time series and spectrum plots out"
requires-python = ">=3.10"
keywords = ["dsp", "audio", "signal generator", "spectrum", "fft", "oscilloscope"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Sound/Audio :: Analysis",
    "Topic :: Scientific/Engineering :: Visualization",
]
dependencies = [
    "numpy",
    "pygame",
    "matplotlib",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
dsptest = "dsptest.through:main"

[tool.hatch.build.targets.wheel]
packages = ["dsptest"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
