"""
Shim for tools that still call ``setup.py``; metadata and the version live in pyproject.toml.
"""
from setuptools import setup

setup()
