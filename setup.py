"""
Intent mirror: syncs cross-chain intents and settlement events into a SQL database
"""

from setuptools import find_namespace_packages, setup

with open("README.md", encoding="utf-8") as f:
    long_description = f.read()

with open("requirements.txt", encoding="utf-8") as f:
    requirements = [
        line for line in f.read().splitlines() if line and not line.startswith("#")
    ]

setup(
    name="intentsync",
    version="0.0.1",
    description="Syncs cross-chain intents and their settlement events into a SQL database",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_namespace_packages(include=["intentsync", "intentsync.*"]),
    package_data={
        "": ["../requirements.txt", "abi/*.json"],
    },
    install_requires=requirements,
    extras_require={
        "test": ["pytest"],
        "postgres": ["psycopg2-binary"],
    },
    entry_points={
        "console_scripts": ["intentsync=intentsync.__main__:cli"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
)
