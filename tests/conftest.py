# Copyright 2023 ACCESS-NRI and contributors. See the top-level COPYRIGHT file for details.
# SPDX-License-Identifier: Apache-2.0

from pathlib import Path

import netCDF4
import numpy as np
import pytest
import xarray as xr

LEV = [1000.0, 500.0, 200.0]


def write_netcdf(path: str | Path, ds: xr.Dataset, unlimited_dims=None) -> Path:
    """
    Write a dataset the way the catalog reads it back: netCDF4 engine, and no
    _FillValue attributes added by xarray
    """
    encoding = {name: {"_FillValue": None} for name in ds.variables}
    ds.to_netcdf(
        path, engine="netcdf4", encoding=encoding, unlimited_dims=unlimited_dims
    )
    return Path(path)


def make_dataset(
    time: list[float],
    lev: list[float] = LEV,
    t_units: str = "K",
    attrs: dict | None = None,
) -> xr.Dataset:
    """
    A small dataset with a temperature variable on (time, lev)
    """
    return xr.Dataset(
        data_vars={
            "T": (
                ("time", "lev"),
                np.zeros((len(time), len(lev)), dtype="float32"),
                {"units": t_units, "long_name": "temperature"},
            ),
        },
        coords={
            "time": (
                "time",
                np.array(time, dtype="float64"),
                {"units": "days since 2000-01-01", "axis": "T"},
            ),
            "lev": (
                "lev",
                np.array(lev, dtype="float64"),
                {"units": "hPa", "positive": "down"},
            ),
        },
        attrs=attrs if attrs is not None else {"Conventions": "CF-1.8", "title": "test"},
    )


@pytest.fixture
def make_nc(tmp_path):
    """
    Factory writing a dataset into tmp_path
    """

    def _make_nc(name: str, ds: xr.Dataset, unlimited_dims=None) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        return write_netcdf(path, ds, unlimited_dims=unlimited_dims)

    return _make_nc


@pytest.fixture
def two_file_dir(tmp_path, make_nc):
    """
    a.nc and b.nc share the lev axis and differ only in time
    """
    make_nc("a.nc", make_dataset(time=[0.0]))
    make_nc("b.nc", make_dataset(time=[1.0]))
    return tmp_path


@pytest.fixture
def make_raw_nc(tmp_path):
    """
    Factory writing a file with netCDF4 directly, so that dimensions are
    declared exactly as given (a size of None makes a dimension unlimited)
    """

    def _make_raw_nc(name: str, dimensions: dict, variables: dict) -> Path:
        path = tmp_path / name
        with netCDF4.Dataset(str(path), mode="w") as nc:
            for dim_name, size in dimensions.items():
                nc.createDimension(dim_name, size)
            for var_name, (dims, values) in variables.items():
                var = nc.createVariable(var_name, "f8", dims)
                var[:] = values
        return path

    return _make_raw_nc
