"""
Setup script for the chimera package.
"""

from pathlib import Path

from setuptools import find_packages, setup

# Read requirements.txt
requirements_path = Path(__file__).parent / "requirements" / "requirements.txt"
with open(requirements_path, "r") as f:
    # Filter out comments and empty lines
    install_requires = []
    for line in f:
        line = line.strip()
        if line and not line.startswith("#"):
            install_requires.append(line)

# Read long description from README.md if it exists
long_description = ""
readme_path = Path(__file__).parent / "README.md"
if readme_path.exists():
    with open(readme_path, "r") as f:
        long_description = f.read()

setup(
    name="chimera",
    version="0.1.0",
    description="AI capability gateway: cached image classification and fallback image generation",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["chimera", "chimera.*"]),
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=install_requires,
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
        ],
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "pytest-mock>=3.11.1",
            "ruff>=0.1.3",
            "black>=24.0.0",
            "mypy>=1.5.1",
        ],
    },
    entry_points={
        "console_scripts": [
            "chimera=chimera.cli.main:cli",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Topic :: Software Development :: Libraries",
    ],
)
