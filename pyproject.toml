[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "quitools"
version = "0.1.0"
description = "Quantitative MRI tools: B1 mapping, NIfTI image reading and writing, image comparison, header inspection and fitting utilities"
requires-python = ">=3.10"
dependencies = [
    "numpy",
    "scipy",
]
keywords = [
    "mri",
    "quantitative imaging",
    "b1 mapping",
    "afi",
    "dream",
    "nifti",
    "medical imaging",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Healthcare Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Medical Science Apps.",
    "Topic :: Scientific/Engineering :: Image Processing",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
qi-b1 = "quitools.b1:main"
qi-core = "quitools.coreprogs:main"

[tool.hatch.build.targets.wheel]
packages = ["quitools"]

[tool.pytest.ini_options]
addopts = "-ra"
