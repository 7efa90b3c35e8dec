"""
Setup script for quizdesk.

quizdesk is the quiz engine of the school platform: quiz authoring and
validation, per-attempt presentation order, grading, result visibility,
learner notifications and attempt export.

The 'quizdesk' command is the entry point for staff and operators.
"""

from setuptools import find_packages, setup

setup(
    name="quizdesk",
    version="1.0.0",
    description="Quiz authoring, grading and delivery engine for the school platform",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="quizdesk maintainers",
    packages=find_packages(include=["quizdesk", "quizdesk.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy[asyncio]>=2.0.0",
        "psycopg2-binary>=2.9.0",
        "asyncpg>=0.28.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
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
            "quizdesk=quizdesk.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
    ],
    keywords="quiz grading education cli",
)
