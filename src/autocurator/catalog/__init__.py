# Copyright 2023 ACCESS-NRI and contributors. See the top-level COPYRIGHT file for details.
# SPDX-License-Identifier: Apache-2.0

"""Tools for building catalogs of axes and variables across many files"""

from ..utils import get_jsonschema

REQUIRED_KEYS = ["dataset", "file", "axes", "variables"]

VARIABLE_KEY_ATTRIBUTES = frozenset(
    ["missing_value", "comments", "long_name", "grid_name", "grid_type"]
)
"""Variable and axis attributes considered semantically significant."""

DATASET_KEY_ATTRIBUTES = frozenset(["conventions", "version", "history"])
"""Global attributes considered semantically significant (case-insensitive)."""

VERTICAL_AXIS_NAMES = frozenset(["lev", "pres", "z", "plev"])

SUBAXIS_RTOL = 1.0e-10
SUBAXIS_ATOL = 1.0e-12

_, CATALOG_JSONSCHEMA = get_jsonschema(
    schema_file="data/catalog_schema.json", required=REQUIRED_KEYS
)


class CatalogError(Exception):
    "Generic Exception for problems building or loading a catalog"

    pass
