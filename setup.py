# setup.py
from setuptools import find_namespace_packages, setup

setup(
    name="tychonet",
    version="0.1.0",
    description="Operator tooling for a shared test network: config documents, freezes and resets",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["tychonet*"]),
    package_data={"tychonet.interface": ["locales/*.json"]},
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "requests",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        'console_scripts': [
            'tychonet=tychonet.main:main',
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
