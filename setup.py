# setup.py
from setuptools import setup

setup(
    name="nestedset",
    version="0.1.0",
    description="Nested set (MPTT) trees over a flat, range-queryable store",
    packages=["nestedset"],
    python_requires=">=3.8",
    install_requires=[
        "numpy",
        "duckdb",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
