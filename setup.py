"""Setup configuration for subwaypuller."""

from setuptools import setup, find_packages

with open("docs/README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="subwaypuller",
    version="0.2.0",
    description="Aggregates MTA subway realtime arrivals per station and persists them to DynamoDB, PostgreSQL and S3",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: System :: Monitoring",
    ],
    python_requires=">=3.9",
    install_requires=[
        "requests>=2.25.0",
        "gtfs-realtime-bindings>=1.0.0",
        "protobuf>=3.17.0",
        "boto3>=1.26.0",
        "SQLAlchemy>=2.0",
        "psycopg2-binary>=2.9",
        "python-dotenv>=1.0.0",
        "tzdata; platform_system == 'Windows'",
    ],
    extras_require={
        "dev": ["pytest>=6.0", "hypothesis>=6.0", "black", "flake8"],
    },
    entry_points={
        "console_scripts": [
            "subwaypuller=subwaypuller.cli:main",
        ],
    },
)
