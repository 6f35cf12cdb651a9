# Copyright 2023 ACCESS-NRI and contributors. See the top-level COPYRIGHT file for details.
# SPDX-License-Identifier: Apache-2.0

import copy
import json
import xml.etree.ElementTree as ET

import numpy as np
import pytest
import xarray as xr
from conftest import LEV, make_dataset

from autocurator.catalog import CatalogError
from autocurator.catalog.axes import AxisType
from autocurator.catalog.manager import Catalog, CatalogState
from autocurator.catalog.serializers import (
    CatalogLoadError,
    catalog_from_dict,
    catalog_to_dict,
    catalog_to_xml,
)


@pytest.fixture
def catalog(two_file_dir):
    return Catalog().populate_from_file_list(two_file_dir, ["a.nc", "b.nc"])


@pytest.fixture
def grouped_catalog(tmp_path, make_nc):
    """
    A catalog with an axis holding a placeholder sub-axis and a variable with
    two axis groups
    """
    make_nc(
        "a.nc",
        xr.Dataset(
            {
                "V": (("time", "lev"), np.zeros((1, 3))),
                "bnds": (("time", "nv"), np.zeros((1, 2))),
            },
            coords={"time": [0.0], "lev": LEV},
        ),
    )
    make_nc(
        "b.nc",
        xr.Dataset(
            {
                "V": (("time",), np.zeros(1)),
                "bnds": (("time", "nv"), np.zeros((1, 3))),
            },
            coords={"time": [1.0]},
        ),
    )
    return Catalog().populate_from_file_list(tmp_path, ["a.nc", "b.nc"])


def test_to_dict_layout(catalog, two_file_dir):
    data = catalog_to_dict(catalog)

    assert list(data) == ["dataset", "file", "axes", "variables"]
    assert data["dataset"] == {"Conventions": "CF-1.8", "title": "test"}
    assert data["file"]["0"] == {
        "name": str(two_file_dir / "a.nc"),
        "axes": [["time", "0"], ["lev", "0"]],
        "Conventions": "CF-1.8",
    }

    # Single sub-axis is inlined
    assert data["axes"]["lev"] == {
        "datatype": "Double",
        "units": "hPa",
        "size": 3,
        "values": LEV,
        "positive": "down",
    }
    # Multiple sub-axes are nested
    assert data["axes"]["time"]["subaxes"] == {
        "0": {"size": 1, "values": [0.0]},
        "1": {"size": 1, "values": [1.0]},
    }
    assert "size" not in data["axes"]["time"]

    assert data["variables"]["T"] == {
        "datatype": "Float",
        "units": "K",
        "axisids": ["time", "lev"],
        "subaxismap": [["0", "0", "0"], ["1", "0", "1"]],
        "long_name": "temperature",
    }


def test_to_dict_axis_groups(grouped_catalog):
    data = catalog_to_dict(grouped_catalog)

    assert data["variables"]["V"]["axisgroups"] == {
        "0": {"axisids": ["time", "lev"], "subaxismap": [["0", "0", "0"]]},
        "1": {"axisids": ["time"], "subaxismap": [["1", "1"]]},
    }
    assert "axisids" not in data["variables"]["V"]
    assert data["axes"]["nv"]["datatype"] == "None"
    assert data["axes"]["nv"]["subaxes"] == {
        "0": {"size": 2, "values": []},
        "1": {"size": 3, "values": []},
    }


@pytest.mark.parametrize("fixture", ["catalog", "grouped_catalog"])
def test_round_trip(fixture, request, tmp_path):
    original = request.getfixturevalue(fixture)
    path = tmp_path / "catalog.json"

    original.to_json_file(path)
    loaded = Catalog.from_json_file(path)

    assert loaded == original
    assert loaded.state == CatalogState.BUILT
    assert catalog_to_dict(loaded) == catalog_to_dict(original)


def test_round_trip_restores_axis_type(catalog):
    loaded = catalog_from_dict(catalog_to_dict(catalog))

    assert loaded.axes["lev"].axis_type == AxisType.VERTICAL
    assert loaded.axes["time"].axis_type == AxisType.RECORD


@pytest.mark.parametrize("pretty_print, indented", [(True, True), (False, False)])
def test_pretty_print(catalog, tmp_path, pretty_print, indented):
    path = tmp_path / "catalog.json"
    catalog.to_json_file(path, pretty_print=pretty_print)

    text = path.read_text()
    assert ('\n    "dataset": {' in text) is indented
    assert json.loads(text) == catalog_to_dict(catalog)


def test_attribute_clashing_with_structural_key(tmp_path, make_nc):
    ds = make_dataset(time=[0.0])
    ds["T"].attrs["axisids"] = "lat lon"
    make_nc("a.nc", ds)
    catalog = Catalog().populate_from_file_list(tmp_path, ["a.nc"])

    with pytest.warns(UserWarning, match='attribute "axisids" clashes'):
        data = catalog_to_dict(catalog)

    assert data["variables"]["T"]["axisids"] == ["time", "lev"]


def _drop(path):
    def _modify(data):
        *parents, key = path
        target = data
        for p in parents:
            target = target[p]
        del target[key]

    return _modify


def _set(path, value):
    def _modify(data):
        *parents, key = path
        target = data
        for p in parents:
            target = target[p]
        target[key] = value

    return _modify


@pytest.mark.parametrize(
    "modify, match",
    [
        (_drop(["dataset"]), "dataset"),
        (_drop(["variables"]), "variables"),
        (_drop(["axes", "lev", "datatype"]), "datatype"),
        (_drop(["axes", "lev", "size"]), 'axes/lev: exactly one of "size" or "subaxes"'),
        (
            _set(["axes", "lev", "subaxes"], {}),
            'axes/lev: exactly one of "size" or "subaxes"',
        ),
        (_drop(["axes", "time", "subaxes", "1", "size"]), 'axes/time/subaxes/1: missing "size"'),
        (_set(["axes", "lev", "size"], 4), "axes/lev"),
        (_set(["axes", "lev", "datatype"], "Quad"), "Unknown datatype 'Quad'"),
        (_drop(["variables", "T", "datatype"]), "datatype"),
        (_drop(["variables", "T", "subaxismap"]), 'variables/T: missing "subaxismap"'),
        (
            _set(["variables", "T", "axisgroups"], {}),
            'variables/T: exactly one of "axisids"/"subaxismap" or "axisgroups"',
        ),
        (
            _set(["variables", "T", "subaxismap"], [["0", "0"]]),
            "needs 2 sub-axis ids and a file id",
        ),
        (
            _set(["variables", "T", "subaxismap"], [["0", "0", "0"], ["0", "0", "1"]]),
            "duplicate",
        ),
        (_set(["variables", "T", "subaxismap"], [["0", "0", "7"]]), "unknown file id 7"),
        (_set(["file", "0", "axes"], [["lev", "5"]]), "unknown sub-axis 5"),
        (
            _set(["variables", "T", "subaxismap"], [["0", "9", "0"]]),
            "variables/T: unknown sub-axis 9 of axis lev",
        ),
        (
            _set(["variables", "T", "axisids"], ["time", "depth"]),
            "variables/T: unknown axis depth",
        ),
        (_set(["variables", "T", "long_name"], 5), "variables/T/long_name"),
        (_set(["axes", "lev", "positive"], 1.5), "axes/lev/positive"),
        (_set(["file", "0", "Conventions"], ["CF-1.8"]), "file/0/Conventions"),
        (_drop(["file", "0", "name"]), "name"),
        (_set(["dataset", "title"], 1), "dataset/title"),
    ],
)
def test_load_errors(catalog, modify, match):
    data = copy.deepcopy(catalog_to_dict(catalog))
    modify(data)

    with pytest.raises(CatalogLoadError, match=match):
        catalog_from_dict(data)


def test_read_json_errors(tmp_path):
    with pytest.raises(CatalogLoadError, match="Unable to open"):
        Catalog.from_json_file(tmp_path / "missing.json")

    path = tmp_path / "bad.json"
    path.write_text("{not json")
    with pytest.raises(CatalogLoadError, match="Unable to parse"):
        Catalog.from_json_file(path)


def test_no_write_while_scanning(catalog, tmp_path):
    catalog.state = CatalogState.SCANNING

    with pytest.raises(CatalogError):
        catalog.to_json_file(tmp_path / "catalog.json")
    with pytest.raises(CatalogError):
        catalog.to_xml_file(tmp_path / "catalog.xml")

    assert not (tmp_path / "catalog.json").exists()


def test_to_xml(catalog, two_file_dir):
    text = catalog_to_xml(catalog)

    assert text.startswith('<?xml version="1.0" encoding="UTF-8"?>\n<!DOCTYPE dataset SYSTEM')
    root = ET.fromstring(text.split("\n", 2)[2])

    assert root.tag == "dataset"
    assert root.get("Conventions") == "CF-1.8"
    assert [(a.get("name"), a.text) for a in root.findall("attr")] == [("title", "test")]

    files = root.findall("file")
    assert [f.get("id") for f in files] == ["0", "1"]
    assert files[0].get("name") == str(two_file_dir / "a.nc")
    assert [(r.get("name"), r.get("subaxis")) for r in files[1].findall("axisref")] == [
        ("time", "1"),
        ("lev", "0"),
    ]

    axes = {a.get("id"): a for a in root.findall("axis")}
    assert axes["lev"].get("length") == "3"
    assert axes["lev"].get("datatype") == "Double"
    assert axes["lev"].text.strip() == "[1000 500 200]"
    assert [s.get("id") for s in axes["time"].findall("subaxis")] == ["0", "1"]
    assert axes["time"].find("subaxis").text.strip() == "[0]"

    (variable,) = root.findall("variable")
    assert variable.get("id") == "T"
    assert variable.get("long_name") == "temperature"
    assert [(d.get("name"), d.get("length")) for d in variable.iter("domElem")] == [
        ("time", "1"),
        ("lev", "3"),
    ]
    assert [(r.get("subaxes"), r.get("file")) for r in variable.findall("fileref")] == [
        ("0 0", "0"),
        ("1 0", "1"),
    ]


def test_to_xml_axis_groups(grouped_catalog, tmp_path):
    path = tmp_path / "catalog.xml"
    grouped_catalog.to_xml_file(path)

    text = path.read_text()
    root = ET.fromstring(text.split("\n", 2)[2])
    variables = {v.get("id"): v for v in root.findall("variable")}

    groups = variables["V"].findall("axisgroup")
    assert [g.get("id") for g in groups] == ["0", "1"]
    assert [d.get("name") for d in groups[1].iter("domElem")] == ["time"]

    # nv has two sub-axes of different lengths and no values
    nv = {a.get("id"): a for a in root.findall("axis")}["nv"]
    assert [s.get("length") for s in nv.findall("subaxis")] == ["2", "3"]
    assert all(s.text is None for s in nv.findall("subaxis"))
    domain = variables["bnds"].find("domain")
    assert [d.get("length") for d in domain.findall("domElem")] == ["1", None]
