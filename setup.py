"""
Setup script for learning-companion-engine.

The engine keeps a learner's programming skills growing and retained.
It combines three independent algorithm families:

1. Knowledge Tracing - Bayesian estimate of per-skill mastery
2. Spaced Repetition - SM-2 follow-up reviews and retention assessment
3. Recommendation - template content, collaborative filtering and sequencing

The 'companion' command exposes the computations for inspection.
"""

from setuptools import find_packages, setup

setup(
    name="learning-companion-engine",
    version="1.0.0",
    description="Adaptive learning engine: knowledge tracing, spaced repetition and content recommendation",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=("tests", "tests.*")),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.12.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "companion=companion.cli.main:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition knowledge-tracing recommendation education",
)
