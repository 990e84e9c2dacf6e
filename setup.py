#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import os
from pathlib import Path

from setuptools import find_packages, setup

HERE = Path(os.path.abspath(__file__)).resolve().parent
README = (HERE / "readme.md").read_text()

setup(
    name="vind",
    version="0.3.0",
    description=(
        "A command line tool that creates containers that look and work like "
        "virtual machines, on Docker."
    ),
    long_description=README,
    long_description_content_type="text/markdown",
    url="https://github.com/brightzheng100/vind",
    license="Apache-2.0",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
    ],
    keywords="docker, ssh, virtual machines, vind",
    python_requires=">=3.10",
    package_dir={"": "src/cli"},
    packages=find_packages(where="src/cli"),
    include_package_data=True,
    install_requires=[
        "click>=8.1",
        "docker>=6.1",
        "PyYAML",
        "tabulate",
    ],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["vind=vind.cli:cli"]},
)
