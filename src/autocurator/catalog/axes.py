# Copyright 2023 ACCESS-NRI and contributors. See the top-level COPYRIGHT file for details.
# SPDX-License-Identifier: Apache-2.0

"""Axes and the distinct coordinate vectors (sub-axes) observed for them"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from . import SUBAXIS_ATOL, SUBAXIS_RTOL, VERTICAL_AXIS_NAMES, CatalogError
from .attributes import AttributeSet, DataType
from .lookup import LookupVector

GRID_STANDARD_NAMES = frozenset(
    [
        "latitude",
        "longitude",
        "grid_latitude",
        "grid_longitude",
        "projection_x_coordinate",
        "projection_y_coordinate",
    ]
)


class UnsupportedTypeError(CatalogError):
    pass


class AxisType(Enum):
    UNKNOWN = -1
    AUXILIARY = 0
    GRID = 1
    RECORD = 2
    VERTICAL = 3


@dataclass(frozen=True, eq=False)
class SubAxis:
    """
    One concrete set of coordinate values observed for an axis.

    ``values`` is None when the axis has no coordinate variable, in which case
    only the size is known. Otherwise it is a read-only 1-D array whose dtype
    matches ``datatype``. Two sub-axes are equal if their types and sizes
    match and their values agree to within a fixed floating point tolerance.
    """

    datatype: DataType = DataType.NONE
    size: int = 0
    values: np.ndarray | None = None

    def __post_init__(self):
        if self.values is None:
            return

        if not self.datatype.is_numeric:
            raise UnsupportedTypeError(
                f"Coordinate values of type '{self.datatype.value}' are not supported"
            )

        values = np.array(self.values, dtype=self.datatype.numpy_dtype).reshape(-1)
        if len(values) != self.size:
            raise ValueError(
                f"SubAxis of size {self.size} given {len(values)} coordinate values"
            )
        values.setflags(write=False)
        object.__setattr__(self, "values", values)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SubAxis):
            return NotImplemented
        if (self.datatype != other.datatype) or (self.size != other.size):
            return False
        if self.values is None or other.values is None:
            return self.values is None and other.values is None
        return bool(
            np.allclose(
                self.values,
                other.values,
                rtol=SUBAXIS_RTOL,
                atol=SUBAXIS_ATOL,
                equal_nan=True,
            )
        )

    __hash__ = None  # type: ignore

    @property
    def has_values(self) -> bool:
        return self.values is not None

    def values_to_list(self) -> list:
        if self.values is None:
            return []
        return self.values.tolist()

    def contains(self, value) -> bool:
        """
        Is ``value`` one of the coordinate values, to within tolerance?
        """
        if self.values is None:
            return False
        return bool(
            np.any(
                np.isclose(self.values, value, rtol=SUBAXIS_RTOL, atol=SUBAXIS_ATOL)
            )
        )

    def values_to_string(self) -> str:
        """
        Render the values as a bracketed, space separated list
        """
        if self.datatype == DataType.DOUBLE:
            items = [format(v, ".17g") for v in self.values_to_list()]
        elif self.datatype == DataType.FLOAT:
            items = [format(v, ".8g") for v in self.values_to_list()]
        else:
            items = [str(v) for v in self.values_to_list()]
        return "[" + " ".join(items) + "]"


@dataclass
class AxisCatalog:
    """
    Everything known about one named axis: the metadata of its coordinate
    variable and every distinct sub-axis seen for it, keyed by sub-axis id.
    """

    info: AttributeSet
    axis_type: AxisType = field(default=AxisType.UNKNOWN, compare=False)
    sub_axes: LookupVector[SubAxis] = field(default_factory=LookupVector)

    @classmethod
    def new(cls, name: str) -> "AxisCatalog":
        return cls(info=AttributeSet.for_variable(name, entity="Dimension variable"))

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def has_coordinate(self) -> bool:
        """
        Has a coordinate variable been recorded for this axis?
        """
        return self.info.datatype != DataType.NONE

    def _next_id(self) -> str:
        next_id = len(self.sub_axes)
        while str(next_id) in self.sub_axes:
            next_id += 1
        return str(next_id)

    def insert(self, sub_axis_id: str, sub_axis: SubAxis) -> None:
        self.sub_axes.insert(sub_axis_id, sub_axis)

    def find(self, sub_axis: SubAxis) -> str | None:
        """
        Return the id of the first stored sub-axis equal to ``sub_axis``
        """
        for sub_axis_id, existing in self.sub_axes.items():
            if existing == sub_axis:
                return sub_axis_id
        return None

    def find_or_insert(self, sub_axis: SubAxis) -> str:
        """
        Return the id of an equal sub-axis, storing ``sub_axis`` under a new
        id if there is none.
        """
        sub_axis_id = self.find(sub_axis)
        if sub_axis_id is None:
            sub_axis_id = self._next_id()
            self.sub_axes.insert(sub_axis_id, sub_axis)
        return sub_axis_id

    def classify(
        self, attributes: Mapping[str, str] | None, unlimited: bool = False
    ) -> AxisType:
        """
        Set the axis type from the coordinate variable attributes (None if
        there is no coordinate variable) and whether the dimension is unlimited.
        """
        attrs = attributes or {}
        cf_axis = attrs.get("axis", "").upper()

        if unlimited or cf_axis == "T":
            self.axis_type = AxisType.RECORD
        elif (
            self.name in VERTICAL_AXIS_NAMES or cf_axis == "Z" or "positive" in attrs
        ):
            self.axis_type = AxisType.VERTICAL
        elif cf_axis in ("X", "Y") or attrs.get("standard_name") in GRID_STANDARD_NAMES:
            self.axis_type = AxisType.GRID
        else:
            self.axis_type = AxisType.AUXILIARY

        return self.axis_type
