#!/usr/bin/env python
""" CRUD services over SqlAlchemy models, queried with JSON query dicts """

from setuptools import setup, find_packages

setup(
    name='docservice',
    version='1.0.0',

    license='BSD',
    description=__doc__,
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    keywords=['sqlalchemy', 'crud', 'asyncio'],

    packages=find_packages(exclude=('tests', 'tests.*')),
    scripts=[],
    entry_points={},

    python_requires='>= 3.8',
    install_requires=[
        'sqlalchemy[asyncio] >= 2.0',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-cov',
            'aiosqlite',
            'nox',
        ],
    },
    include_package_data=True,

    platforms='any',
    classifiers=[
        # https://pypi.python.org/pypi?%3Aaction=list_classifiers
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Natural Language :: English',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Framework :: AsyncIO',
        'Topic :: Software Development :: Libraries :: Python Modules',
    ],
)
