#!/usr/bin/env python3
"""
Setup script for the meeting protocol generator.

Install with:
    pip install -e .

With test tooling:
    pip install -e ".[dev]"
"""

from setuptools import setup
from pathlib import Path

# Read version
version_file = Path(__file__).parent / "version.py"
version_dict = {}
exec(version_file.read_text(), version_dict)
__version__ = version_dict.get("__version__", "1.0.0")

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="meeting-protocol-docx",
    version=__version__,
    author="Meeting Protocol Contributors",
    author_email="",
    description="DOCX protocol generator for homeowners' meetings with per-voter QR signatures",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="MIT",
    py_modules=[
        "protocol_types",
        "protocol_errors",
        "identity_qr",
        "vote_tally",
        "protocol_markup",
        "docx_package",
        "protocol_delivery",
        "protocol_generator",
        "meeting_api",
        "web_ui",
        "config",
        "logging_config",
        "version",
    ],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Office/Business",
        "Topic :: Text Processing :: Markup :: XML",
    ],
    python_requires=">=3.11",
    install_requires=[
        "requests>=2.28.0",
        "tenacity>=8.0.0",
        "gradio>=4.0.0",
        "Pillow>=9.0.0",
        "qrcode>=7.4",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "zxing-cpp>=2.2.0",
            "ruff>=0.1.0",
            "pyright>=0.1.0",
            "pre-commit>=3.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "meeting-protocol-web=web_ui:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
    keywords="docx protocol meeting voting qr ooxml",
)
