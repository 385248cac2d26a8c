import os

from setuptools import setup, find_packages

with open(os.path.join(os.path.dirname(__file__), "readme.md"), "r") as fh:
    long_description = fh.read()

setup(
    name='powerbank-server',
    version='1.0.0',
    license='MIT',
    description='Rents power banks by the hour.',
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=("tests", "tests.*")),
    python_requires='>=3.10',
    install_requires=[
        'aiohttp>=3.8,<4',
        'aiohttp-cors',
        'aiohttp-apispec>=2.2,<3',
        'apispec>=3,<6',
        'marshmallow>=3.13,<4',
        'marshmallow-jsonschema',
        'tortoise-orm>=0.19,<1',
        'uvloop',
        'sentry-sdk',
    ],
    extras_require={
        'test': [
            'pytest',
            'faker',
        ],
    },
    entry_points={
        'console_scripts': ['powerbank=powerbank.cli:run'],
    },
)
