"""
grbac: Role-Based Access-Control Decision Engine - Python Implementation

grbac decides whether a principal holds a set of permissions, either from
role rules compiled out of a roles data source, from a caller-supplied
callback, or by delegating the decision to a remote authority over HTTP.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="grbac-py",
    version="0.1.0",
    author="Mauricio Fernandez",
    author_email="mauricio.fernandez@siemens.com",
    description="Role-Based Access-Control Decision Engine - Python Implementation",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/mauriciomferz/Gauth_py",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Security",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
            "pre-commit>=3.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "grbac-demo=grbac.demo.main:run",
        ],
    },
)
