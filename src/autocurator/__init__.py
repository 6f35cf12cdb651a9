# Copyright 2023 ACCESS-NRI and contributors. See the top-level COPYRIGHT file for details.
# SPDX-License-Identifier: Apache-2.0

__version__ = "0.1.0"

DEFAULT_FILE_PATTERN = "*.nc"
"""Glob pattern used to select data files when scanning a directory."""

NETCDF_ENGINE = "netcdf4"
"""xarray backend used to open data files."""

CDML_DOCTYPE = (
    'DOCTYPE dataset SYSTEM "http://www-pcmdi.llnl.gov/software/cdms/cdml.dtd"'
)
"""Document type declaration written at the top of XML catalogs."""
