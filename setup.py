"""
Setup file.
"""

import os

from setuptools import find_namespace_packages, setup

URL = "https://github.com/zackees/depforge"
KEYWORDS = "build dependencies makefile include-graph generator idl cross-compile"
HERE = os.path.dirname(os.path.abspath(__file__))


if __name__ == "__main__":
    setup(
        name="depforge",
        version="0.1.0",
        description="Dependency generator for multi-target source trees",
        maintainer="Zachary Vorhies",
        keywords=KEYWORDS,
        url=URL,
        python_requires=">=3.8",
        package_dir={"": "src"},
        packages=find_namespace_packages(where="src", include=["depforge", "depforge.*"]),
        install_requires=["tqdm"],
        extras_require={"test": ["pytest"]},
        entry_points={"console_scripts": ["depforge=depforge.cli:main"]},
        include_package_data=True)
