from setuptools import find_packages, setup

setup(
    name="cmdwatcher",
    version="0.1.0",
    description="Run shell commands when files change in watched folders",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "click",
        "toml",
        "pyyaml",
        "python-daemon",
        "rich",
        "psutil",
        "watchdog",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "cmdwatcher=cmdwatcher.cli:main"
        ]
    },
)
