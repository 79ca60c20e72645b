# coding=utf-8
from setuptools import setup

setup(
    name='proto-runtime',
    description='pure python protobuf messages: binary codec, unknown '
                'fields, extensions, Any, and delimited streams',
    version='0.1',
    license='MIT',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Programming Language :: Python :: 3 :: Only',
        'Programming Language :: Python :: 3.7',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'License :: OSI Approved :: MIT License',
    ],

    packages=[
        'proto_runtime',
    ],

    package_dir={'': "src"},
    python_requires='>=3.7',

    install_requires=[],
    extras_require={
        'test': [
            'flake8',
            'pytest',
            'pytest-asyncio',
            'pytest-cov',
        ]
    },
)
