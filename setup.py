"""Setup script for layoutran."""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README
readme = Path("README.md").read_text(encoding="utf-8")

setup(
    name="layoutran",
    version="1.0.0",
    description="Layout-faithful translation of PDF and DOCX documents",
    long_description=readme,
    long_description_content_type="text/markdown",
    author="layoutran contributors",
    license="MIT",

    packages=find_packages(exclude=["tests*", "docs*", "examples*"]),

    python_requires=">=3.9",

    install_requires=[
        "pyyaml>=6.0",
        "rich>=13.0.0",
        "PyMuPDF>=1.24.0",
        "python-docx>=1.1.0",
        "Pillow>=10.0.0",
        "pytesseract>=0.3.10",
        "deep-translator>=1.11.0",
        "requests>=2.31.0",
        "aiohttp>=3.9.0",
        "typer>=0.9.0",
        "loguru>=0.7.0",
        "diskcache>=5.6.0"
    ],

    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "pytest-asyncio>=0.21.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.4.0",
            "isort>=5.12.0"
        ]
    },

    entry_points={
        "console_scripts": [
            "layoutran=cli.commands.main:cli",
        ],
    },

    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Text Processing :: Linguistic",
    ],

    keywords="translation pdf docx layout ocr rtl hebrew",
)
