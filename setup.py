#!/usr/bin/env python

# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

# -*- encoding: utf-8 -*-

from setuptools import find_packages
from setuptools import setup


setup(
    name="kanatype",
    version="0.0.0",
    license="GPL-3.0-or-later",
    description="Kana composition engine with local, remote and native conversion backends",
    long_description="TODO",
    packages=find_packages("src"),
    package_dir={"": "src"},
    include_package_data=True,
    package_data={"kanatype.backends": ["*.proto"]},
    zip_safe=False,
    classifiers=[
        # complete classifier list: http://pypi.python.org/pypi?%3Aaction=list_classifiers
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: GNU General Public License v3 or later (GPLv3+)",
        "Natural Language :: Japanese",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: Implementation :: CPython",
        "Topic :: Text Processing :: Linguistic",
    ],
    keywords=[
        "ime",
        "japanese",
        "kana",
    ],
    python_requires=">=3.11",
    install_requires=[
        "cattrs>=22.2.0",
        "cffi>=1.15.0",
        "grpcio>=1.60.0",
        "msgspec>=0.18.0",
        "protobuf>=4.22.0",
        "pygtrie>=2.4.2",
        "timeflake>=0.4.0",
        "trio>=0.23.0",
        "trio-util>=0.7.0",
    ],
    extras_require={
        "test": ["pytest>=6.2.4", "pytest-trio>=0.8.0"],
    },
    entry_points={
        "console_scripts": [
            "kanatype-type = kanatype.scripts:type_cli",
            "kanatype-server = kanatype.scripts:server_cli",
        ],
    },
)
