from setuptools import find_packages, setup

setup(
    name="logwatcher",
    version="0.2.0",
    description="Tail many log files and deliver each new line to a callback",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    python_requires=">=3.8",
    install_requires=[
        "click",
        "toml",
        "pyyaml",
        "python-daemon",
        "rich",
        "psutil",
        "watchdog>=2.1",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "logwatcher=logwatcher.cli:main"
        ]
    },
)
