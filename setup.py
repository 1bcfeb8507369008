from setuptools import setup, find_packages

setup(
    name="goldmatch",
    version="0.1.0",
    packages=find_packages(include=["goldmatch", "goldmatch.*"]),
    install_requires=[
        "jellyfish>=1.0",
        "thefuzz>=0.20",
        "networkx>=2.6",
        "phonenumbers>=8.12",
        "PyYAML>=6.0",
        "xxhash>=3.0",
        "typer>=0.9",
        "rich>=12.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "goldmatch=goldmatch.cli:main",
        ],
    },
    description="GoldMatch - entity resolution and golden record engine",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.8",
)
