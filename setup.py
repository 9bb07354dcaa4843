#!/usr/bin/env python3
"""
Setup script for the curve quoting engine
"""

from pathlib import Path

from setuptools import find_packages, setup


HERE = Path(__file__).parent


def read_requirements(filename):
    """Requirement lines from a requirements file, comments dropped"""
    lines = (HERE / filename).read_text().splitlines()
    return [line.strip() for line in lines if line.strip() and not line.startswith("#")]


setup(
    name="curvequote",
    version="0.1.0",
    description="Bonding curve pricing and trade quoting for creator coins",
    python_requires=">=3.9",
    packages=find_packages(include=["curvequote", "curvequote.*"]),
    install_requires=read_requirements("requirements.txt"),
    extras_require={
        "test": read_requirements("requirements-test.txt"),
    },
    entry_points={
        "console_scripts": [
            "curvequote=curvequote.__main__:main",
        ],
    },
)
