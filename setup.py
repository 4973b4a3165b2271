#!/usr/bin/env python3
"""
Setup script for the dataprep dataset services

Installs the shared dataprep package together with the dataset_service
and analysis_worker entrypoints from backend/.
"""

from setuptools import setup, find_namespace_packages

setup(
    name="dataprep-datasets",
    version="0.1.0",
    package_dir={"": "backend"},
    packages=find_namespace_packages(
        where="backend",
        include=["dataprep*", "dataset_service*", "analysis_worker*"],
        exclude=["*.tests", "*.tests.*"],
    ),
    python_requires=">=3.9",
    install_requires=[
        # 🚀 Web Framework
        "fastapi>=0.104.1",
        "uvicorn[standard]>=0.24.0",
        "httpx>=0.25.2",

        # 📋 Data Validation & Settings
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "python-dotenv>=1.0.0",

        # 🗄️ Metadata & Locks
        "redis[hiredis]>=5.0.1",
        "asyncpg>=0.29.0",

        # 📬 Message Queue
        "confluent-kafka>=2.3.0",

        # ☁️ Storage
        "boto3>=1.38.27",
        "botocore>=1.38.27",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
)
