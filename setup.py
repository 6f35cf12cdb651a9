from setuptools import find_packages, setup

setup(
    name="autocurator",
    version="0.1.0",
    author="ACCESS-NRI",
    description="Build deduplicated catalogs of axes and variables across collections of netCDF files",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"autocurator": ["data/*.json"]},
    include_package_data=True,
    classifiers=[
        "Development Status :: 4 - Beta",
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: Apache Software License 2.0 (Apache-2.0)",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
    install_requires=[
        "jsonschema",
        "netCDF4",
        "numpy",
        "pandas",
        "pyyaml",
        "xarray",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": ["autocurator=autocurator.cli:build"],
    },
)
