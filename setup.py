from setuptools import setup, find_packages

setup(
    name="roomcorder",
    version="0.1.0",
    description="Multi-participant voice room recorder with speech segmentation and mixdown",
    author="",
    python_requires=">=3.8",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy>=1.21.0",
        "rich>=12.5.0",
        "pyyaml>=6.0.0",
        "pypubsub>=4.0.3",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "roomcorder=roomcorder.main:main",
        ],
    },
)
