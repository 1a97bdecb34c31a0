"""
Setup script for the job aggregator project.

Allows development installation with `pip install -e .`
"""

from setuptools import setup, find_namespace_packages

setup(
    name="job-aggregator",
    version="1.0.0",
    packages=find_namespace_packages(include=["src", "src.*", "search_service", "search_service.*"]),
    py_modules=["version"],
    python_requires=">=3.11",
    install_requires=[
        "pymongo>=4.6",
        "redis>=5.0.1",
        "fastapi>=0.110",
        "uvicorn>=0.27",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "python-dotenv>=1.0",
        "requests>=2.31",
        "beautifulsoup4>=4.12",
        "tenacity>=8.2",
        "json-repair>=0.25",
        "langchain-openai>=0.1",
        "langchain-core>=0.2",
        "playwright>=1.40",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
            "httpx>=0.26",
        ],
    },
)
