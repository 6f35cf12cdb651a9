# Copyright 2023 ACCESS-NRI and contributors. See the top-level COPYRIGHT file for details.
# SPDX-License-Identifier: Apache-2.0

"""Reading catalog metadata out of netCDF files"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

import netCDF4
import numpy as np
import xarray as xr

from .. import DEFAULT_FILE_PATTERN, NETCDF_ENGINE
from ..catalog import CatalogError
from ..catalog.attributes import DataType


class SourceOpenError(CatalogError):
    pass


def attribute_to_string(value) -> str:
    """
    Render a netCDF attribute value as a string. Numeric attributes holding
    more than one value are joined with commas.
    """
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        return value

    values = np.atleast_1d(np.asarray(value)).tolist()
    return ",".join(str(v) for v in values)


@dataclass(frozen=True)
class NcDimension:
    """A dimension as declared in a single file"""

    name: str
    size: int
    unlimited: bool = False


@dataclass
class NcVariable:
    """
    Holds the metadata of a variable as declared in a single file. Attribute
    values are rendered to strings.
    """

    name: str
    datatype: DataType
    dimensions: tuple[str, ...]
    attributes: dict[str, str] = field(default_factory=dict)

    @property
    def units(self) -> str:
        return self.attributes.get("units", "")


class SourceFile:
    """
    Read-only view of the metadata in an open netCDF file
    """

    def __init__(
        self, path: str | Path, ds: xr.Dataset, dimensions: list[NcDimension]
    ):
        """
        Parameters
        ----------
        path: str or pathlib.Path
            The path the dataset was opened from
        ds: :py:class:`xarray.Dataset`
            The dataset, opened without CF decoding
        dimensions: list of NcDimension
            Every dimension declared in the file, in declaration order
        """
        self.path = str(path)
        self.ds = ds

        self.attributes = {
            str(name): attribute_to_string(value) for name, value in ds.attrs.items()
        }

        self.dimensions = dimensions

        self._variables = {}
        for name, var in ds.variables.items():
            self._variables[str(name)] = NcVariable(
                name=str(name),
                datatype=DataType.from_dtype(var.dtype),
                dimensions=tuple(str(d) for d in var.dims),
                attributes={
                    str(k): attribute_to_string(v) for k, v in var.attrs.items()
                },
            )

    @property
    def variables(self) -> list[NcVariable]:
        return list(self._variables.values())

    def get_variable(self, name: str) -> NcVariable | None:
        return self._variables.get(name)

    def read_values(self, name: str) -> np.ndarray:
        """
        Read the full value vector of a one-dimensional variable
        """
        return np.asarray(self.ds.variables[name].values).reshape(-1)


def read_dimensions(path: str | Path) -> list[NcDimension]:
    """
    Read every dimension declared in the root group of a netCDF file, in
    declaration order. Unlike xarray, this includes dimensions that no
    variable uses.
    """
    with netCDF4.Dataset(str(path), mode="r") as nc:
        return [
            NcDimension(name=str(name), size=len(dim), unlimited=dim.isunlimited())
            for name, dim in nc.dimensions.items()
        ]


@contextmanager
def open_source(path: str | Path) -> Iterator[SourceFile]:
    """
    Open a netCDF file for metadata extraction

    Parameters
    ----------
    path: str or pathlib.Path
        The path to the file

    Raises
    ------
    SourceOpenError
        If the file cannot be opened for reading
    """
    try:
        dimensions = read_dimensions(path)
        ds = xr.open_dataset(
            path,
            engine=NETCDF_ENGINE,
            decode_cf=False,
            decode_times=False,
            decode_coords=False,
        )
    except (OSError, ValueError) as e:
        raise SourceOpenError(
            f'Unable to open data file "{path}" for reading'
        ) from e

    try:
        yield SourceFile(path, ds, dimensions)
    finally:
        ds.close()


def find_files(
    path: str | Path, pattern: str = DEFAULT_FILE_PATTERN, recurse: bool = False
) -> tuple[str, list[str]]:
    """
    Find the data files to index

    Parameters
    ----------
    path: str or pathlib.Path
        A directory to search, or a single file
    pattern: str
        Glob pattern the file names must match
    recurse: bool
        Whether to search sub-directories

    Returns
    -------
    base_dir: str
        The directory the returned file names are relative to
    filenames: list of str
        The matching file names, sorted so that scans are reproducible
    """
    base = Path(path)
    if base.is_file():
        return str(base.parent), [base.name]
    if not base.is_dir():
        raise SourceOpenError(f'Unable to open directory "{path}"')

    matches = base.rglob(pattern) if recurse else base.glob(pattern)
    filenames = sorted(str(p.relative_to(base)) for p in matches if p.is_file())

    return str(base), filenames
