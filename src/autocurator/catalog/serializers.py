# Copyright 2023 ACCESS-NRI and contributors. See the top-level COPYRIGHT file for details.
# SPDX-License-Identifier: Apache-2.0

"""Reading and writing catalogs as JSON, and exporting them as CDML-style XML"""

import json
import logging
import warnings
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from pathlib import Path

import jsonschema

from .. import CDML_DOCTYPE
from ..utils import validate_against_schema
from . import CATALOG_JSONSCHEMA, CatalogError
from .attributes import AttributeSet, DataType
from .axes import AxisCatalog, SubAxis
from .manager import Catalog, CatalogState, FileRecord
from .variables import VariableCatalog

logger = logging.getLogger(__name__)

FILE_KEYS = frozenset(["name", "axes"])
AXIS_KEYS = frozenset(["datatype", "units", "size", "values", "subaxes"])
VARIABLE_KEYS = frozenset(
    ["datatype", "units", "axisids", "subaxismap", "axisgroups"]
)

JSON_INDENT = 4


class CatalogLoadError(CatalogError):
    "Raised when a JSON catalog is malformed"

    pass


def _add_attributes(
    target: dict, info: AttributeSet, reserved: frozenset[str]
) -> None:
    """
    Copy the attributes of ``info`` into ``target``. Attributes whose names
    clash with the structural keys of the entry are skipped with a warning.
    """
    for key, value in info.attributes.items():
        if key in reserved:
            warnings.warn(
                f'{info.describe()}: attribute "{key}" clashes with a catalog key and will not be written',
                category=UserWarning,
            )
            continue
        target[key] = value


def _sub_axis_to_dict(sub_axis: SubAxis) -> dict:
    return {"size": sub_axis.size, "values": sub_axis.values_to_list()}


def _axis_group_to_dict(axis_names: tuple, file_map: Mapping) -> dict:
    return {
        "axisids": list(axis_names),
        "subaxismap": [
            [*sub_axis_ids, file_id] for sub_axis_ids, file_id in file_map.items()
        ],
    }


def catalog_to_dict(catalog: Catalog) -> dict:
    """
    Convert a catalog into the nested dictionaries written to JSON
    """
    dataset = dict(catalog.dataset.attributes)

    files = {}
    for file_id, record in catalog.files.items():
        entry = {
            "name": record.filename,
            "axes": [
                [axis_name, sub_axis_id]
                for axis_name, sub_axis_id in record.axis_to_sub_axis_id.items()
            ],
        }
        _add_attributes(entry, record.info, FILE_KEYS)
        files[file_id] = entry

    axes = {}
    for axis_name, axis in catalog.axes.items():
        entry = {
            "datatype": axis.info.datatype.value,
            "units": axis.info.units,
        }
        if len(axis.sub_axes) == 1:
            entry.update(_sub_axis_to_dict(axis.sub_axes.at(0)))
        else:
            entry["subaxes"] = {
                sub_axis_id: _sub_axis_to_dict(sub_axis)
                for sub_axis_id, sub_axis in axis.sub_axes.items()
            }
        _add_attributes(entry, axis.info, AXIS_KEYS)
        axes[axis_name] = entry

    variables = {}
    for variable_name, variable in catalog.variables.items():
        entry = {
            "datatype": variable.info.datatype.value,
            "units": variable.info.units,
        }
        if len(variable.axis_groups) == 1:
            ((axis_names, file_map),) = variable.axis_groups.items()
            entry.update(_axis_group_to_dict(axis_names, file_map))
        else:
            entry["axisgroups"] = {
                str(i): _axis_group_to_dict(axis_names, file_map)
                for i, (axis_names, file_map) in enumerate(
                    variable.axis_groups.items()
                )
            }
        _add_attributes(entry, variable.info, VARIABLE_KEYS)
        variables[variable_name] = entry

    return {"dataset": dataset, "file": files, "axes": axes, "variables": variables}


def _parse_datatype(value: str, where: str) -> DataType:
    try:
        return DataType.from_string(value)
    except ValueError as e:
        raise CatalogLoadError(f"{where}: {e}") from e


def _sub_axis_from_dict(data: Mapping, datatype: DataType, where: str) -> SubAxis:
    if "size" not in data:
        raise CatalogLoadError(f'{where}: missing "size"')

    size = data["size"]
    if isinstance(size, bool) or not isinstance(size, int) or size < 0:
        raise CatalogLoadError(f'{where}: "size" must be a non-negative integer')

    values = data.get("values", [])
    if not isinstance(values, list):
        raise CatalogLoadError(f'{where}: "values" must be a list of numbers')

    if not datatype.is_numeric:
        if values:
            raise CatalogLoadError(
                f'{where}: axis of type "{datatype.value}" cannot have "values"'
            )
        return SubAxis(datatype=datatype, size=size)

    try:
        return SubAxis(datatype=datatype, size=size, values=values)
    except (TypeError, ValueError) as e:
        raise CatalogLoadError(f"{where}: {e}") from e


def _axis_from_dict(name: str, data: Mapping) -> AxisCatalog:
    where = f'axes/{name}'
    axis = AxisCatalog.new(name)
    axis.info.datatype = _parse_datatype(data["datatype"], where)
    axis.info.units = data.get("units", "")

    has_size, has_subaxes = "size" in data, "subaxes" in data
    if has_size == has_subaxes:
        raise CatalogLoadError(
            f'{where}: exactly one of "size" or "subaxes" is required'
        )

    if has_size:
        axis.insert("0", _sub_axis_from_dict(data, axis.info.datatype, where))
    else:
        for sub_axis_id, sub_data in data["subaxes"].items():
            axis.insert(
                sub_axis_id,
                _sub_axis_from_dict(
                    sub_data, axis.info.datatype, f"{where}/subaxes/{sub_axis_id}"
                ),
            )

    for key, value in data.items():
        if key not in AXIS_KEYS:
            axis.info.insert_attribute(key, value)

    axis.classify(axis.info.attributes if axis.has_coordinate else None)

    return axis


def _is_string_list(value) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def _insert_axis_group(
    variable: VariableCatalog, data: Mapping, where: str
) -> None:
    for key in ("axisids", "subaxismap"):
        if key not in data:
            raise CatalogLoadError(f'{where}: missing "{key}"')

    if not _is_string_list(data["axisids"]):
        raise CatalogLoadError(f'{where}: "axisids" must be a list of strings')
    if not isinstance(data["subaxismap"], list) or not all(
        _is_string_list(row) for row in data["subaxismap"]
    ):
        raise CatalogLoadError(
            f'{where}: "subaxismap" must be a list of lists of strings'
        )

    axis_names = tuple(data["axisids"])
    # Keep the group even when its table is empty
    variable.axis_groups.setdefault(axis_names, {})

    for row in data["subaxismap"]:
        if len(row) != len(axis_names) + 1:
            raise CatalogLoadError(
                f'{where}: each "subaxismap" entry needs {len(axis_names)} sub-axis ids and a file id'
            )
        if not variable.insert(axis_names, tuple(row[:-1]), row[-1]):
            raise CatalogLoadError(
                f'{where}: duplicate "subaxismap" entry {row[:-1]}'
            )


def _variable_from_dict(name: str, data: Mapping) -> VariableCatalog:
    where = f"variables/{name}"
    variable = VariableCatalog.new(name)
    variable.info.datatype = _parse_datatype(data["datatype"], where)
    variable.info.units = data.get("units", "")

    inlined = ("axisids" in data) or ("subaxismap" in data)
    nested = "axisgroups" in data
    if inlined == nested:
        raise CatalogLoadError(
            f'{where}: exactly one of "axisids"/"subaxismap" or "axisgroups" is required'
        )

    if inlined:
        _insert_axis_group(variable, data, where)
    else:
        for group_id, group in data["axisgroups"].items():
            _insert_axis_group(variable, group, f"{where}/axisgroups/{group_id}")

    for key, value in data.items():
        if key not in VARIABLE_KEYS:
            variable.info.insert_attribute(key, value)

    return variable


def _check_references(catalog: Catalog) -> None:
    for file_id, record in catalog.files.items():
        for axis_name, sub_axis_id in record.axis_to_sub_axis_id.items():
            if (axis_name not in catalog.axes) or (
                sub_axis_id not in catalog.axes[axis_name].sub_axes
            ):
                raise CatalogLoadError(
                    f"file/{file_id}: unknown sub-axis {sub_axis_id} of axis {axis_name}"
                )

    for variable_name, variable in catalog.variables.items():
        for axis_names, file_map in variable.axis_groups.items():
            for axis_name in axis_names:
                if axis_name not in catalog.axes:
                    raise CatalogLoadError(
                        f"variables/{variable_name}: unknown axis {axis_name}"
                    )
            for sub_axis_ids, file_id in file_map.items():
                for axis_name, sub_axis_id in zip(axis_names, sub_axis_ids):
                    if sub_axis_id not in catalog.axes[axis_name].sub_axes:
                        raise CatalogLoadError(
                            f"variables/{variable_name}: unknown sub-axis {sub_axis_id} of axis {axis_name}"
                        )
                if file_id not in catalog.files:
                    raise CatalogLoadError(
                        f"variables/{variable_name}: unknown file id {file_id}"
                    )


def catalog_from_dict(data: Mapping) -> Catalog:
    """
    Rebuild a catalog from the nested dictionaries produced by
    :py:func:`catalog_to_dict`

    Raises
    ------
    CatalogLoadError
        If the data are malformed. The message names the first offending key.
    """
    try:
        validate_against_schema(data, CATALOG_JSONSCHEMA)
    except jsonschema.ValidationError as e:
        raise CatalogLoadError(f"Catalog does not match the schema: {e.message}") from e

    catalog = Catalog()

    for key, value in data["dataset"].items():
        catalog.dataset.insert_attribute(key, value)

    for file_id, file_data in data["file"].items():
        record = catalog.files.insert(file_id, FileRecord.new(file_data["name"]))
        for axis_name, sub_axis_id in file_data["axes"]:
            if axis_name in record.axis_to_sub_axis_id:
                raise CatalogLoadError(
                    f'file/{file_id}: axis "{axis_name}" listed more than once'
                )
            record.axis_to_sub_axis_id[axis_name] = sub_axis_id
        for key, value in file_data.items():
            if key not in FILE_KEYS:
                record.info.insert_attribute(key, value)

    for name, axis_data in data["axes"].items():
        catalog.axes.insert(name, _axis_from_dict(name, axis_data))

    for name, variable_data in data["variables"].items():
        catalog.variables.insert(name, _variable_from_dict(name, variable_data))

    _check_references(catalog)

    catalog.state = CatalogState.BUILT

    return catalog


def write_json(catalog: Catalog, path: str | Path, pretty_print: bool = True) -> None:
    """
    Write a catalog to a JSON file

    Parameters
    ----------
    catalog: :py:class:`~autocurator.catalog.manager.Catalog`
        The catalog to write
    path: str or pathlib.Path
        The output file
    pretty_print: bool, optional
        Indent the output by four spaces
    """
    if catalog.state == CatalogState.SCANNING:
        raise CatalogError("Cannot write a catalog while it is being built")

    with open(path, "w", encoding="utf-8") as fobj:
        json.dump(
            catalog_to_dict(catalog),
            fobj,
            indent=JSON_INDENT if pretty_print else None,
        )

    logger.info("Wrote JSON catalog to %s", path)


def read_json(path: str | Path) -> Catalog:
    """
    Read a catalog from a JSON file written by :py:func:`write_json`
    """
    try:
        with open(path, encoding="utf-8") as fobj:
            data = json.load(fobj)
    except OSError as e:
        raise CatalogLoadError(f'Unable to open JSON catalog "{path}"') from e
    except json.JSONDecodeError as e:
        raise CatalogLoadError(f'Unable to parse JSON catalog "{path}": {e}') from e

    return catalog_from_dict(data)


def _append_attr_elements(element: ET.Element, attributes: Mapping) -> None:
    for key, value in attributes.items():
        attr = ET.SubElement(element, "attr", name=key, datatype="String")
        attr.text = value


def _set_key_attributes(
    element: ET.Element, info: AttributeSet, reserved: frozenset[str]
) -> None:
    for key, value in info.key_attributes.items():
        if key in reserved:
            warnings.warn(
                f'{info.describe()}: attribute "{key}" clashes with an XML attribute and will not be written',
                category=UserWarning,
            )
            continue
        element.set(key, value)


def _sub_axis_text(sub_axis: SubAxis) -> str | None:
    return sub_axis.values_to_string() if sub_axis.has_values else None


def _axis_group_element(
    parent: ET.Element, catalog: Catalog, axis_names: tuple, file_map: Mapping
) -> None:
    if axis_names:
        domain = ET.SubElement(parent, "domain")
        for i, axis_name in enumerate(axis_names):
            sizes = {
                catalog.axes[axis_name].sub_axes[sub_axis_ids[i]].size
                for sub_axis_ids in file_map
            }
            dom_elem = ET.SubElement(domain, "domElem", name=axis_name, start="0")
            if len(sizes) == 1:
                dom_elem.set("length", str(sizes.pop()))

    for sub_axis_ids, file_id in file_map.items():
        ET.SubElement(
            parent, "fileref", subaxes=" ".join(sub_axis_ids), file=file_id
        )


def catalog_to_xml(catalog: Catalog) -> str:
    """
    Render a catalog as a CDML-style XML document. This format is export only.
    """
    root = ET.Element("dataset")
    _set_key_attributes(root, catalog.dataset, frozenset())
    _append_attr_elements(root, catalog.dataset.other_attributes)

    for file_id, record in catalog.files.items():
        element = ET.SubElement(root, "file", id=file_id, name=record.filename)
        _set_key_attributes(element, record.info, frozenset(["id", "name"]))
        _append_attr_elements(element, record.info.other_attributes)
        for axis_name, sub_axis_id in record.axis_to_sub_axis_id.items():
            ET.SubElement(element, "axisref", name=axis_name, subaxis=sub_axis_id)

    for axis_name, axis in catalog.axes.items():
        element = ET.SubElement(
            root,
            "axis",
            id=axis_name,
            units=axis.info.units,
            datatype=axis.info.datatype.value,
        )
        _set_key_attributes(
            element, axis.info, frozenset(["id", "units", "datatype", "length"])
        )
        _append_attr_elements(element, axis.info.other_attributes)

        if len(axis.sub_axes) == 1:
            sub_axis = axis.sub_axes.at(0)
            element.set("length", str(sub_axis.size))
            element.text = _sub_axis_text(sub_axis)
        else:
            for sub_axis_id, sub_axis in axis.sub_axes.items():
                sub_element = ET.SubElement(
                    element, "subaxis", id=sub_axis_id, length=str(sub_axis.size)
                )
                sub_element.text = _sub_axis_text(sub_axis)

    for variable_name, variable in catalog.variables.items():
        element = ET.SubElement(
            root,
            "variable",
            id=variable_name,
            datatype=variable.info.datatype.value,
            units=variable.info.units,
        )
        _set_key_attributes(
            element, variable.info, frozenset(["id", "units", "datatype"])
        )
        _append_attr_elements(element, variable.info.other_attributes)

        if len(variable.axis_groups) == 1:
            ((axis_names, file_map),) = variable.axis_groups.items()
            _axis_group_element(element, catalog, axis_names, file_map)
        else:
            for i, (axis_names, file_map) in enumerate(variable.axis_groups.items()):
                group = ET.SubElement(element, "axisgroup", id=str(i))
                _axis_group_element(group, catalog, axis_names, file_map)

    ET.indent(root)
    body = ET.tostring(root, encoding="unicode")

    return f'<?xml version="1.0" encoding="UTF-8"?>\n<!{CDML_DOCTYPE}>\n{body}\n'


def write_xml(catalog: Catalog, path: str | Path) -> None:
    if catalog.state == CatalogState.SCANNING:
        raise CatalogError("Cannot write a catalog while it is being built")

    with open(path, "w", encoding="utf-8") as fobj:
        fobj.write(catalog_to_xml(catalog))

    logger.info("Wrote XML catalog to %s", path)
