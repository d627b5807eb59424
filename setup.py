"""Setup script for the floodwatch package."""

from setuptools import find_packages, setup

setup(
    name="floodwatch",
    version="0.1.0",
    description="Water level telemetry relay and dashboard client",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pyyaml",
        "python-dotenv",
        "paho-mqtt>=2.0.0",
        "aiohttp",
        "pyserial",
    ],
    extras_require={
        "dev": [
            "pytest",
            "pytest-asyncio",
            "black",
            "isort",
            "mypy",
        ],
    },
    entry_points={
        "console_scripts": [
            "floodwatch-gateway=floodwatch.gateway:main",
            "floodwatch-node=floodwatch.node:main",
        ],
    },
)
