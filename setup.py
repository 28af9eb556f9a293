#!/usr/bin/env python
"""Setup script for spatial-cv-benchmark package."""

from setuptools import setup, find_packages
import os

# Read the contents of README file
this_directory = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

# Read requirements
with open(os.path.join(this_directory, 'requirements.txt')) as f:
    requirements = [line.strip() for line in f
                    if line.strip() and not line.startswith('#')]

setup(
    name="spatial-cv-benchmark",
    version="1.0.0",
    author="najahpokkiri",
    author_email="your.email@example.com",
    description="Spatial cross-validation benchmarking of geospatial regression learners",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/najahpokkiri/spatial-cv-benchmark",
    packages=find_packages(exclude=["tests", "tests.*", "scripts", "scripts.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering :: GIS",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=6.2.0",
            "pytest-cov>=2.12.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "spatial-cv-benchmark=spatial_cv.pipeline:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
