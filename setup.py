"""
Setup script for repokit.

Allows development installation with `pip install -e .`
Test dependencies: `pip install -e .[test]`
"""

import re
from pathlib import Path

from setuptools import setup, find_packages

version = re.search(
    r'__version__ = "([^"]+)"',
    (Path(__file__).parent / "repokit" / "version.py").read_text(),
).group(1)

setup(
    name="repokit",
    version=version,
    packages=find_packages(include=["repokit", "repokit.*"]),
    python_requires=">=3.11",
    install_requires=[
        "pymongo>=4.13",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "python-dotenv>=1.0",
        "tenacity>=8.2",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.23",
        ],
    },
)
