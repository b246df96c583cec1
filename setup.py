#!/usr/bin/env python

from setuptools import setup

setup(
    name="drivesync",
    version="0.1.0",
    description="Folders, listings and metadata reconciliation for S3-backed file trees",
    packages=["drivesync", "drivesync.api", "drivesync.elastic", "drivesync.metadata", "drivesync.objectstorage"],
    include_package_data=True,
    zip_safe=False,
    keywords=["API", "S3", "sync"],
    classifiers=[
        "License :: OSI Approved :: MIT License",
        "Topic :: System :: Filesystems",
    ],
    python_requires=">=3.11",
    install_requires=[
        "fastapi[all]",
        "elasticsearch[async]~=8.6",
        "aiobotocore",
        "types-aiobotocore[s3]",
        "async-lru",
        "python-dotenv",
        "pydantic>=2",
        "pydantic-settings",
        "typing_extensions",
        "uvicorn",
    ],
    extras_require={
        "dev": [
            "pytest",
            "anyio",
            "httpx",
            "mypy",
            "flake8",
        ]
    },
    entry_points={"console_scripts": ["drivesync = drivesync.__main__:main"]},
)
