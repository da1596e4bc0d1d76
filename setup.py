"""Setup configuration for PKS."""

from setuptools import setup, find_packages

setup(
    name="pks-cli",
    version="0.1.0",
    description="Project initializer pipeline and template renderer for PKS",
    python_requires=">=3.11",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"pks": ["templates/**/*", "templates/**/.*"]},
    include_package_data=True,
    install_requires=[
        "rich",
        "PyYAML",
        "filelock",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "pks-init=pks.cli:main",
        ],
    },
)
