from __future__ import annotations

import io
import os
from setuptools import setup, find_packages


def read_readme():
    here = os.path.abspath(os.path.dirname(__file__))
    readme = os.path.join(here, "README.md")
    if os.path.exists(readme):
        with io.open(readme, "r", encoding="utf8") as fh:
            return fh.read()
    return "lmtools: Levenberg-Marquardt nonlinear least-squares curve fitting"


setup(
    name="lmtools",
    version="1.0.0",
    description="Levenberg-Marquardt curve fitting with bounds, weights and pluggable scheduling",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    author="",
    license="MIT",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.9",
    install_requires=["numpy>=1.20"],
    extras_require={
        "test": ["pytest>=7", "scipy>=1.7"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    zip_safe=False,
)
