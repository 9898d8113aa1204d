#!/usr/bin/env python3
"""
Setup script for database-exporter: export relational databases to Parquet and a DuckDB catalog
"""

from pathlib import Path

from setuptools import find_packages, setup


# Get version from database_exporter/__init__.py
def get_version():
    """Read version from database_exporter/__init__.py"""
    init_file = Path(__file__).parent / "database_exporter" / "__init__.py"
    with open(init_file, "r", encoding="utf-8") as f:
        for line in f:
            if line.startswith("__version__"):
                return line.split("=")[1].strip().strip('"').strip("'")
    raise RuntimeError("Unable to find version string.")


# Read the contents of README file
this_directory = Path(__file__).parent
readme = this_directory / "README.md"
long_description = readme.read_text(encoding="utf-8") if readme.exists() else ""


CORE_DEPENDENCIES = [
    "pandas>=2.1.4",
    "sqlalchemy>=2.0.23",
    "pyarrow>=14.0.0",
    "duckdb>=0.10.0",
    "pydantic>=2.0",
    "pyyaml>=6.0.1",
    "structlog>=23.1.0",
]

# Source database drivers, SQLite needs none
POSTGRES_DEPENDENCIES = ["psycopg[binary]>=3.1"]
MYSQL_DEPENDENCIES = ["pymysql>=1.1.0"]
MSSQL_DEPENDENCIES = ["pyodbc>=5.0.0"]

# Development dependencies
DEV_DEPENDENCIES = [
    "pytest==8.0.2",
    "black==23.12.1",
    "mypy==1.8.0",
]


setup(
    name="database-exporter",
    version=get_version(),
    description="Export SQL Server, PostgreSQL, MySQL and SQLite tables to Parquet and a DuckDB catalog",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests*", "docs*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Database",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.11",
    install_requires=CORE_DEPENDENCIES,
    extras_require={
        "postgres": POSTGRES_DEPENDENCIES,
        "mysql": MYSQL_DEPENDENCIES,
        "mssql": MSSQL_DEPENDENCIES,
        "dev": DEV_DEPENDENCIES,
        "all": POSTGRES_DEPENDENCIES + MYSQL_DEPENDENCIES + MSSQL_DEPENDENCIES + DEV_DEPENDENCIES,
    },
    entry_points={
        "console_scripts": [
            "database-exporter=database_exporter.main:main",
        ],
    },
    zip_safe=False,
    keywords=["sql", "database", "export", "parquet", "duckdb", "sqlserver", "postgresql", "mysql", "sqlite"],
    platforms=["any"],
    license="Apache-2.0",
)
