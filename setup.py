"""Setup configuration for quoteflow."""

from setuptools import find_packages, setup

setup(
    name="quoteflow",
    version="0.1.0",
    packages=find_packages(include=["quoteflow", "quoteflow.*"]),
    package_dir={"": "."},
    python_requires=">=3.8",
    install_requires=[
        "boto3>=1.26.0",
        "botocore>=1.29.0",
        "PyYAML>=6.0",
        "python-dotenv>=1.0.0",
        "requests>=2.28.0",
        "click>=8.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.0.0"],
    },
    entry_points={
        "console_scripts": ["quoteflow=quoteflow.cli:cli"],
    },
)
