import os

from setuptools import find_packages, setup

# Modules to compile
# Only the pure statement-building modules; they run once per merge row set.
modules = [
    "sqlmerge/identifiers.py",
    "sqlmerge/strategy.py",
    "sqlmerge/generator.py",
]

# Compilation is opt-in (SQLMERGE_COMPILE=1) so 'pip install -e .' stays pure Python.
ext_modules = []
if os.environ.get("SQLMERGE_COMPILE") == "1":
    try:
        from mypyc.build import mypycify

        ext_modules = mypycify(modules)
    except (ImportError, RuntimeError):
        # Fallback to pure Python if mypyc is not present or fails
        ext_modules = []

setup(
    name="sqlmerge",
    version="1.0.0",
    description="Upsert tabular data into SQL Server tables with T-SQL MERGE",
    packages=find_packages(include=["sqlmerge", "sqlmerge.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0",
        "pandas>=1.5",
        "numpy>=1.23",
        "sqlalchemy[asyncio]>=2.0",
        "pyodbc>=4.0",
        "pyyaml>=6.0",
        "rich>=13.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "aiosqlite>=0.19",
        ],
    },
    entry_points={
        "console_scripts": [
            "sqlmerge=sqlmerge.cli.main:main",
        ],
    },
    ext_modules=ext_modules,
)
