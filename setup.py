"""
Setup script for dbadmin

Install:
    pip install -e .

With the DM driver and test tools:
    pip install -e ".[dm,test]"
"""

from setuptools import setup, find_packages

setup(
    name="dbadmin",
    version="1.0.0",
    description="Uniform administration layer over MySQL, PostgreSQL, KingBase, SQLite, ClickHouse, Oracle, DM and MongoDB",
    packages=find_packages(include=["dbadmin", "dbadmin.*"]),
    package_data={
        "dbadmin": ["configs/*.yaml"],
    },
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "pyyaml>=6.0",
        "cryptography>=41.0.0",
        "mysql-connector-python>=8.0.0",
        "psycopg2-binary>=2.9.0",
        "clickhouse-connect>=0.6.0",
        "oracledb>=1.4.0",
        "pymongo>=4.0.0",
    ],
    extras_require={
        "dm": ["dmPython>=2.4.0"],
        "test": ["pytest>=7.0.0"],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
        "Topic :: Database :: Front-Ends",
    ],
)
