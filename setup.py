"""Setup script for HamLog Pro."""

from pathlib import Path

from setuptools import find_packages, setup

HERE = Path(__file__).parent

setup(
    name="hamlog-pro",
    version="0.1.0",
    description="Ham radio QSO logger with Maidenhead tools and remote logbook reconciliation",
    long_description=(HERE / "SPEC_FULL.md").read_text(encoding="utf-8")
    if (HERE / "SPEC_FULL.md").exists()
    else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["hamlog_pro", "hamlog_pro.*"]),
    python_requires=">=3.11",
    install_requires=[
        "sqlmodel>=0.0.16,<0.0.45",
        "pydantic>=2.5",
        "SQLAlchemy>=2.0",
        "platformdirs>=3.0",
        "typer>=0.9",
        "rich>=13.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "hamlog=hamlog_pro.cli:main",
        ],
    },
    zip_safe=False,
)
