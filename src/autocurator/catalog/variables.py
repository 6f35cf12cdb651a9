# Copyright 2023 ACCESS-NRI and contributors. See the top-level COPYRIGHT file for details.
# SPDX-License-Identifier: Apache-2.0

"""Lookup from a variable's sub-axes to the file holding them"""

from dataclasses import dataclass, field

from .attributes import AttributeSet

AxisNameTuple = tuple[str, ...]
SubAxisIdTuple = tuple[str, ...]
SubAxisToFileIdMap = dict[SubAxisIdTuple, str]


@dataclass
class VariableCatalog:
    """
    The metadata of one variable together with, for each ordered tuple of
    axis names the variable has been seen with (an "axis group"), a table
    from tuples of sub-axis ids to the id of the file holding that data.
    """

    info: AttributeSet
    axis_groups: dict[AxisNameTuple, SubAxisToFileIdMap] = field(default_factory=dict)

    @classmethod
    def new(cls, name: str) -> "VariableCatalog":
        return cls(info=AttributeSet.for_variable(name))

    @property
    def name(self) -> str:
        return self.info.name

    def insert(
        self, axis_names: AxisNameTuple, sub_axis_ids: SubAxisIdTuple, file_id: str
    ) -> bool:
        """
        Record that the file ``file_id`` holds this variable on the given
        sub-axes. The first file recorded for a combination wins.

        Returns
        -------
        inserted: bool
            False if the combination was already present, in which case the
            table is left unchanged.
        """
        axis_names = tuple(axis_names)
        sub_axis_ids = tuple(sub_axis_ids)
        if len(axis_names) != len(sub_axis_ids):
            raise ValueError(
                f"Variable {self.name}: {len(axis_names)} axes but {len(sub_axis_ids)} sub-axis ids"
            )

        file_map = self.axis_groups.setdefault(axis_names, {})
        if sub_axis_ids in file_map:
            return False
        file_map[sub_axis_ids] = file_id
        return True

    def find_file_id(
        self, axis_names: AxisNameTuple, sub_axis_ids: SubAxisIdTuple
    ) -> str | None:
        file_map = self.axis_groups.get(tuple(axis_names))
        if file_map is None:
            return None
        return file_map.get(tuple(sub_axis_ids))
