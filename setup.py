"""Setup file for uptime-engine package."""
from __future__ import annotations

from setuptools import find_packages, setup

setup(
    name="uptime-engine",
    version="1.0.0",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.115.0",
        "uvicorn[standard]>=0.30.0",
        "pydantic>=2.7.0",
        "pydantic-settings>=2.7.0",
        "sqlalchemy[asyncio]>=2.0.30",
        "asyncpg>=0.29.0",
        "alembic>=1.13.1",
        "httpx>=0.27.0",
        "structlog>=24.1.0",
        "cryptography>=42.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0.0",
            "pytest-asyncio>=0.24.0",
            "aiosqlite>=0.20.0",
        ],
    },
)
