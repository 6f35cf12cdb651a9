# Copyright 2023 ACCESS-NRI and contributors. See the top-level COPYRIGHT file for details.
# SPDX-License-Identifier: Apache-2.0

"""Build and query a catalog of the axes and variables spread across a set of files"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import pandas as pd

from .. import DEFAULT_FILE_PATTERN
from ..source.utils import SourceFile, find_files, open_source
from ..utils import ProgressReporter
from . import CatalogError
from .attributes import AttributeSet, DataType, InconsistentMetadataError
from .axes import AxisCatalog, SubAxis, UnsupportedTypeError
from .lookup import LookupVector
from .variables import AxisNameTuple, SubAxisIdTuple, VariableCatalog

logger = logging.getLogger(__name__)

DATAFRAME_COLUMNS = ["variable", "axes", "subaxes", "file_id", "filename"]


class CatalogState(Enum):
    EMPTY = "empty"
    SCANNING = "scanning"
    BUILT = "built"


@dataclass
class FileRecord:
    """
    The global attributes of one file and the sub-axis assigned to each of
    its dimensions.
    """

    info: AttributeSet
    axis_to_sub_axis_id: dict[str, str] = field(default_factory=dict)

    @classmethod
    def new(cls, filename: str) -> "FileRecord":
        return cls(info=AttributeSet.for_dataset(filename, entity="File"))

    @property
    def filename(self) -> str:
        return self.info.name


class Catalog:
    """
    A deduplicated index of the files, axes, sub-axes and variables of a
    dataset that is split across many files sharing one schema.

    Files, variables and axes are kept in the order they were first seen.
    File ids and sub-axis ids are assigned sequentially in scan order, so
    scanning the same files in the same order always gives the same catalog.
    """

    def __init__(self):
        self.dataset = AttributeSet.for_dataset(entity="Dataset")
        self.base_directory = ""
        self.files: LookupVector[FileRecord] = LookupVector()
        self.variables: LookupVector[VariableCatalog] = LookupVector()
        self.axes: LookupVector[AxisCatalog] = LookupVector()
        self.state = CatalogState.EMPTY
        self.dropped_collisions = 0

    def __eq__(self, other) -> bool:
        if not isinstance(other, Catalog):
            return NotImplemented
        return (
            (self.dataset == other.dataset)
            and (self.files == other.files)
            and (self.variables == other.variables)
            and (self.axes == other.axes)
        )

    __hash__ = None  # type: ignore

    def __repr__(self) -> str:
        return (
            f"<Catalog: {len(self.files)} files, {len(self.axes)} axes, "
            f"{len(self.variables)} variables>"
        )

    def populate_from_path(
        self,
        path: str | Path,
        pattern: str = DEFAULT_FILE_PATTERN,
        recurse: bool = False,
        reporter: ProgressReporter | None = None,
    ) -> "Catalog":
        """
        Index every file under ``path`` matching ``pattern``

        Parameters
        ----------
        path: str or pathlib.Path
            Directory to search, or a single file
        pattern: str, optional
            Glob pattern for the file names. Defaults to "*.nc"
        recurse: bool, optional
            Whether to search sub-directories
        reporter: :py:class:`~autocurator.utils.ProgressReporter`, optional
            Receives progress messages
        """
        base_dir, filenames = find_files(path, pattern, recurse)
        return self.populate_from_file_list(base_dir, filenames, reporter=reporter)

    def populate_from_file_list(
        self,
        base_dir: str | Path,
        filenames: Sequence[str],
        reporter: ProgressReporter | None = None,
    ) -> "Catalog":
        """
        Index the given files, in order.

        Parameters
        ----------
        base_dir: str or pathlib.Path
            Directory the file names are relative to
        filenames: list of str
            The files to index
        reporter: :py:class:`~autocurator.utils.ProgressReporter`, optional
            Receives progress messages

        Raises
        ------
        SourceOpenError
            If a file cannot be opened
        InconsistentMetadataError
            If metadata differs between files. The catalog is left partially
            populated and should be discarded.
        """
        if self.state != CatalogState.EMPTY:
            raise CatalogError("Catalog has already been populated")

        reporter = reporter or ProgressReporter(logger=logger)

        self.base_directory = str(base_dir)
        self.state = CatalogState.SCANNING

        for filename in filenames:
            full_filename = str(Path(base_dir) / filename)
            with open_source(full_filename) as source:
                reporter("Indexing %s", full_filename)
                self._index_file(source)

        self.state = CatalogState.BUILT

        if self.dropped_collisions:
            logger.warning(
                "%d variable entries were dropped because another file already "
                "holds the same variable on the same sub-axes",
                self.dropped_collisions,
            )
        reporter(
            "Indexed %d files: %d axes, %d variables",
            len(self.files),
            len(self.axes),
            len(self.variables),
        )

        return self

    def _index_file(self, source: SourceFile) -> None:
        # Global attributes are only taken from the first file
        if len(self.files) == 0:
            self.dataset.merge_attributes(source.attributes, check_consistency=False)

        file_id = str(len(self.files))
        record = self.files.insert(file_id, FileRecord.new(source.path))
        record.info.merge_attributes(source.attributes, check_consistency=False)
        record.info.remove_redundant_other_attributes(self.dataset)

        # Variables look up their sub-axes in the file record, so axes go first
        self._index_axes(source, record)
        self._index_variables(source, file_id, record)

    def _index_axes(self, source: SourceFile, record: FileRecord) -> None:
        for dim in source.dimensions:
            axis = self.axes.get(dim.name)
            is_new = axis is None
            if axis is None:
                axis = self.axes.insert(dim.name, AxisCatalog.new(dim.name))

            coord = source.get_variable(dim.name)
            if coord is not None:
                if len(coord.dimensions) != 1:
                    raise InconsistentMetadataError(
                        f'Dimension variable "{coord.name}" must have exactly 1 dimension'
                    )
                if coord.dimensions[0] != dim.name:
                    raise InconsistentMetadataError(
                        f'Dimension variable "{coord.name}" does not have dimension "{dim.name}"'
                    )
                if not coord.datatype.is_numeric:
                    raise UnsupportedTypeError(
                        f'Dimension variable "{coord.name}" has unsupported type "{coord.datatype.value}"'
                    )
                if (not is_new) and (coord.datatype != axis.info.datatype):
                    raise InconsistentMetadataError(
                        f'Dimension variable type mismatch - possible duplicate dimension name "{dim.name}" in "{source.path}"'
                    )

                axis.info.merge_from_source(coord, check_consistency=not is_new)

                sub_axis = SubAxis(
                    datatype=coord.datatype,
                    size=dim.size,
                    values=source.read_values(dim.name),
                )

            else:
                if axis.has_coordinate:
                    raise InconsistentMetadataError(
                        f'Dimension variable "{dim.name}" is missing from "{source.path}" but present in other files'
                    )
                sub_axis = SubAxis(datatype=DataType.NONE, size=dim.size)

            if is_new:
                axis.classify(
                    coord.attributes if coord is not None else None, dim.unlimited
                )

            record.axis_to_sub_axis_id[dim.name] = axis.find_or_insert(sub_axis)

    def _index_variables(
        self, source: SourceFile, file_id: str, record: FileRecord
    ) -> None:
        for var in source.variables:
            # Don't index dimension variables
            if var.name in self.axes:
                continue

            variable = self.variables.get(var.name)
            is_new = variable is None
            if variable is None:
                variable = self.variables.insert(
                    var.name, VariableCatalog.new(var.name)
                )

            variable.info.merge_from_source(var, check_consistency=not is_new)

            sub_axis_ids = []
            for dim_name in var.dimensions:
                assert (
                    dim_name in record.axis_to_sub_axis_id
                ), f'Dimension "{dim_name}" of variable "{var.name}" was not indexed'
                sub_axis_ids.append(record.axis_to_sub_axis_id[dim_name])

            if not variable.insert(var.dimensions, tuple(sub_axis_ids), file_id):
                self.dropped_collisions += 1
                logger.debug(
                    'Variable "%s" in "%s" is already indexed on the same sub-axes; keeping the earlier file',
                    var.name,
                    source.path,
                )

    def get_file_id(
        self, variable: str, axis_names: AxisNameTuple, sub_axis_ids: SubAxisIdTuple
    ) -> str:
        """
        Get the id of the file holding ``variable`` on the given sub-axes

        Raises
        ------
        KeyError
            If the variable or the combination of sub-axes is not in the catalog
        """
        file_id = self.variables[variable].find_file_id(axis_names, sub_axis_ids)
        if file_id is None:
            raise KeyError(
                f"Variable {variable} is not indexed on axes {tuple(axis_names)} "
                f"with sub-axes {tuple(sub_axis_ids)}"
            )
        return file_id

    def get_file(
        self, variable: str, axis_names: AxisNameTuple, sub_axis_ids: SubAxisIdTuple
    ) -> FileRecord:
        return self.files[self.get_file_id(variable, axis_names, sub_axis_ids)]

    def locate(
        self, variable: str, coordinates: Mapping[str, object] | None = None
    ) -> list[str]:
        """
        Find the files holding ``variable`` at the given coordinate values

        Parameters
        ----------
        variable: str
            The variable name
        coordinates: dict, optional
            Map from axis name to a coordinate value. Axes that are not named
            are unconstrained. Axis groups lacking any of the named axes are
            skipped.

        Returns
        -------
        filenames: list of str
            The matching files, in catalog order
        """
        coordinates = coordinates or {}
        variable_catalog = self.variables[variable]

        file_ids = set()
        for axis_names, file_map in variable_catalog.axis_groups.items():
            if not set(coordinates) <= set(axis_names):
                continue
            positions = [
                (axis_names.index(name), name, value)
                for name, value in coordinates.items()
            ]
            for sub_axis_ids, file_id in file_map.items():
                if all(
                    self.axes[name].sub_axes[sub_axis_ids[i]].contains(value)
                    for i, name, value in positions
                ):
                    file_ids.add(file_id)

        return [
            record.filename for file_id, record in self.files.items() if file_id in file_ids
        ]

    def to_dataframe(self) -> pd.DataFrame:
        """
        Flatten the variable lookup tables into a DataFrame with one row per
        (variable, axis group, sub-axis combination).
        """
        rows = []
        for name, variable in self.variables.items():
            for axis_names, file_map in variable.axis_groups.items():
                for sub_axis_ids, file_id in file_map.items():
                    rows.append(
                        {
                            "variable": name,
                            "axes": axis_names,
                            "subaxes": sub_axis_ids,
                            "file_id": file_id,
                            "filename": self.files[file_id].filename,
                        }
                    )
        return pd.DataFrame(rows, columns=DATAFRAME_COLUMNS)

    def to_json_file(self, path: str | Path, pretty_print: bool = True) -> None:
        from .serializers import write_json

        write_json(self, path, pretty_print=pretty_print)

    def to_xml_file(self, path: str | Path) -> None:
        from .serializers import write_xml

        write_xml(self, path)

    @classmethod
    def from_json_file(cls, path: str | Path) -> "Catalog":
        from .serializers import read_json

        return read_json(path)
