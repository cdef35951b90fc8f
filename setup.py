#!/usr/bin/env python

from setuptools import setup, find_packages

with open('README.md', 'r') as f:
    long_description = f.read()

setup(
    name="iri-exporter",
    version="0.2.0",
    url="https://github.com/iota-iri-exporter/iri-exporter",
    license='Apache',
    packages=find_packages(exclude=["test", "test.*"]),
    long_description=long_description,
    long_description_content_type='text/markdown',
    python_requires=">=3.8",
    install_requires=[
        "prometheus_client>=0.17",
        "aiohttp>=3.8",
        "pyzmq>=25",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "mock",
        ],
    },
    zip_safe=False,
    entry_points={
        'console_scripts': [
            'iri-exporter = iri_exporter.__main__:main'
        ]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
    ],
)
