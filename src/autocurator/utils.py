# Copyright 2023 ACCESS-NRI and contributors. See the top-level COPYRIGHT file for details.
# SPDX-License-Identifier: Apache-2.0

"""General utility functions for autocurator"""

import json
import logging
from importlib import resources as rsr
from pathlib import Path
from warnings import warn

import jsonschema
import yaml


def get_jsonschema(schema_file: str, required: list) -> tuple[dict, dict]:
    """
    Read in the required JSON schema, and annotate it with "required" fields.

    Parameters
    ----------
    schema_file: str
        Path to the schema, relative to the autocurator package
    required: list
        A list of the properties to include in the "required" key
    """

    schema_path = rsr.files("autocurator").joinpath(schema_file)
    with schema_path.open(mode="r") as fpath:  # type: ignore
        schema = json.load(fpath)

    schema_required = schema.copy()
    req = []
    for key in required:
        if key not in schema_required["properties"]:
            warn(
                f"Required key {key} does not exist in schema. Entries for this key will not be validated"
            )
        else:
            req.append(key)

    schema_required["required"] = req

    return schema, schema_required


def validate_against_schema(instance: dict, schema: dict) -> None:
    """
    Validate a dictionary against a jsonschema, allowing for tuples as arrays

    Parameters
    ----------
    instance: dict
        The instance to validate
    schema: dict
        The jsonschema

    Raises
    ------
    jsonschema.exceptions.ValidationError
        If the instance does not match the schema. The message lists every
        issue along with the path of the offending key.
    """

    Validator = jsonschema.validators.validator_for(schema)
    type_checker = Validator.TYPE_CHECKER.redefine(
        "array", lambda checker, instance: isinstance(instance, (list, tuple))
    )
    TupleAllowingValidator = jsonschema.validators.extend(
        Validator, type_checker=type_checker
    )

    issues = list(TupleAllowingValidator(schema).iter_errors(instance))

    if len(issues) > 0:
        issue_str = ""
        for i, issue in enumerate(issues, start=1):
            if issue.absolute_path:
                location = "/".join(str(p) for p in issue.absolute_path)
            else:  # Must be a missing keyword at the top level
                location = "(missing)"
            issue_str += f"\n{i:02d} | {location} : {issue.message}"
        raise jsonschema.ValidationError(issue_str)

    return


def load_config_yaml(path: str | Path) -> dict:
    """
    Load a YAML configuration file providing defaults for command line options

    Parameters
    ----------
    path: str or pathlib.Path
        The path to the configuration file

    Returns
    -------
    config: dict
        The configuration, with dashes in option names replaced by underscores
    """

    with open(path) as fpath:
        config = yaml.safe_load(fpath) or {}

    if not isinstance(config, dict):
        raise ValueError(
            f"Configuration file {path} must contain a mapping of option names to values"
        )

    return {str(key).replace("-", "_"): value for key, value in config.items()}


class ProgressReporter:
    """
    Emit progress messages during catalog construction.

    Only the primary participant of a multi-process run reports; the catalog
    logic itself runs identically everywhere.
    """

    def __init__(self, is_primary: bool = True, logger: logging.Logger | None = None):
        self.is_primary = is_primary
        self.logger = logger or logging.getLogger("autocurator")

    def __call__(self, msg: str, *args) -> None:
        if self.is_primary:
            self.logger.info(msg, *args)
