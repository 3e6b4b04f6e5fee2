#!/usr/bin/env python3
from setuptools import setup, find_packages
from pathlib import Path
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

def get_version():
    try:
        with open('config/constants.py', 'r', encoding='utf-8') as f:
            for line in f:
                if line.startswith('__version__'):
                    return line.split('=')[1].strip().strip('"\'')
    except Exception:
        return "1.0.0"

setup(
    name="plankworker",
    version=get_version(),
    description="Offline-first background agent for the Plank Coach web app: caching, push rendering, click routing and a credential-free page bridge",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Plank Coach",
    packages=find_packages(include=['src', 'src.*', 'config', 'config.*']),
    package_dir={'src': 'src', 'config': 'config'},
    package_data={'config': ['*.py'], 'src': ['**/*.py']},
    include_package_data=True,
    py_modules=["plankworker"],
    python_requires=">=3.9",
    install_requires=[
        "requests>=2.28.0",
        "urllib3>=1.26.0",
    ],
    extras_require={
        'dev': [
            'pytest>=7.0.0',
            'pytest-cov>=4.0.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'plankworker=plankworker:main',
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Natural Language :: English",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Software Development :: Libraries",
        "Topic :: Utilities",
    ],
    keywords=[
        "service-worker",
        "pwa",
        "offline",
        "push-notifications",
        "cache",
    ],
)
