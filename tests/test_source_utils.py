# Copyright 2023 ACCESS-NRI and contributors. See the top-level COPYRIGHT file for details.
# SPDX-License-Identifier: Apache-2.0

from pathlib import Path

import numpy as np
import pytest
from conftest import LEV, make_dataset

from autocurator.catalog.attributes import DataType
from autocurator.source.utils import (
    NcDimension,
    SourceOpenError,
    attribute_to_string,
    find_files,
    open_source,
    read_dimensions,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("degrees_north", "degrees_north"),
        (b"bytes", "bytes"),
        (np.float32(1.5), "1.5"),
        (np.array([3], dtype="int32"), "3"),
        (np.array([1.0, 2.5]), "1.0,2.5"),
        (7, "7"),
    ],
)
def test_attribute_to_string(value, expected):
    assert attribute_to_string(value) == expected


def test_open_source(tmp_path, make_nc):
    path = make_nc("a.nc", make_dataset(time=[0.0, 1.0]), unlimited_dims=["time"])

    with open_source(path) as source:
        assert source.path == str(path)
        assert source.attributes == {"Conventions": "CF-1.8", "title": "test"}

        dims = {d.name: d for d in source.dimensions}
        assert dims["time"] == NcDimension("time", 2, unlimited=True)
        assert dims["lev"] == NcDimension("lev", 3, unlimited=False)

        t = source.get_variable("T")
        assert t.datatype == DataType.FLOAT
        assert t.dimensions == ("time", "lev")
        assert t.units == "K"
        assert t.attributes == {"units": "K", "long_name": "temperature"}

        assert source.get_variable("missing") is None
        assert {v.name for v in source.variables} == {"T", "time", "lev"}
        np.testing.assert_array_equal(source.read_values("lev"), LEV)


def test_read_dimensions(make_raw_nc):
    path = make_raw_nc(
        "a.nc",
        {"nbnd": 2, "time": None, "x": 3},
        {"V": (("time", "x"), np.zeros((2, 3)))},
    )

    assert read_dimensions(path) == [
        NcDimension("nbnd", 2, unlimited=False),
        NcDimension("time", 2, unlimited=True),
        NcDimension("x", 3, unlimited=False),
    ]

    with open_source(path) as source:
        assert [d.name for d in source.dimensions] == ["nbnd", "time", "x"]


def test_open_source_unreadable(tmp_path):
    with pytest.raises(SourceOpenError, match="Unable to open data file"):
        with open_source(tmp_path / "missing.nc"):
            pass

    path = tmp_path / "text.nc"
    path.write_text("not a netCDF file")
    with pytest.raises(SourceOpenError):
        with open_source(path):
            pass


@pytest.fixture
def file_tree(tmp_path):
    for name in ["b.nc", "a.nc", "notes.txt", "sub/c.nc", "sub/deeper/d.nc"]:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()
    (tmp_path / "dir.nc").mkdir()
    return tmp_path


@pytest.mark.parametrize(
    "pattern, recurse, expected",
    [
        ("*.nc", False, ["a.nc", "b.nc"]),
        ("*.txt", False, ["notes.txt"]),
        ("*.nc", True, ["a.nc", "b.nc", "sub/c.nc", "sub/deeper/d.nc"]),
        ("*.grib", True, []),
    ],
)
def test_find_files(file_tree, pattern, recurse, expected):
    base_dir, filenames = find_files(file_tree, pattern, recurse)

    assert base_dir == str(file_tree)
    assert filenames == [str(Path(f)) for f in expected]


def test_find_files_single_file(file_tree):
    base_dir, filenames = find_files(file_tree / "sub" / "c.nc")

    assert base_dir == str(file_tree / "sub")
    assert filenames == ["c.nc"]


def test_find_files_missing_directory(tmp_path):
    with pytest.raises(SourceOpenError, match="Unable to open directory"):
        find_files(tmp_path / "nowhere")
