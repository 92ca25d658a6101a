# setup.py
from setuptools import setup, find_packages

setup(
    name="spendlog",
    version="0.1.0",
    description="A personal finance tracker with a JSON API over SQLite",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "click>=7.0",
        "pyyaml>=5.3",
        "python-dotenv>=0.19",
        "fastapi>=0.100",
        "pydantic>=2.0",
        "uvicorn>=0.20",
        "xlsxwriter>=3.0",
        "mcp>=1.0,<2",
        "anyio>=3.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "httpx>=0.24",
            "openpyxl>=3.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "spendlog=spendlog.cli:main",
            "spendlog-mcp=spendlog.mcp_server:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
