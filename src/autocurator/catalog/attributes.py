# Copyright 2023 ACCESS-NRI and contributors. See the top-level COPYRIGHT file for details.
# SPDX-License-Identifier: Apache-2.0

"""Attribute bags shared by datasets, files, axes and variables"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

import numpy as np

from . import DATASET_KEY_ATTRIBUTES, VARIABLE_KEY_ATTRIBUTES, CatalogError


class InconsistentMetadataError(CatalogError):
    "Raised when metadata differs between files that should share it"

    pass


class DataType(str, Enum):
    """
    Declared element type of a variable, named as in the catalog output
    """

    NONE = "None"
    BYTE = "Byte"
    CHAR = "Char"
    SHORT = "Short"
    INT = "Int"
    INT64 = "Int64"
    FLOAT = "Float"
    DOUBLE = "Double"
    UBYTE = "UByte"
    USHORT = "UShort"
    UINT = "UInt"
    UINT64 = "UInt64"
    STRING = "String"

    @classmethod
    def from_dtype(cls, dtype) -> "DataType":
        """
        Map a numpy dtype onto a DataType
        """
        dtype = np.dtype(dtype)
        if dtype.kind == "S":
            return cls.CHAR if dtype.itemsize == 1 else cls.STRING
        if dtype.kind in "UO":
            return cls.STRING
        for member, numpy_dtype in _NUMPY_DTYPES.items():
            if dtype == numpy_dtype:
                return member
        return cls.NONE

    @classmethod
    def from_string(cls, value: str) -> "DataType":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown datatype '{value}'") from None

    @property
    def numpy_dtype(self) -> np.dtype | None:
        """
        The numpy dtype holding values of this type, or None for non-numeric types
        """
        return _NUMPY_DTYPES.get(self)

    @property
    def is_numeric(self) -> bool:
        return self in _NUMPY_DTYPES


_NUMPY_DTYPES = {
    DataType.BYTE: np.dtype("int8"),
    DataType.SHORT: np.dtype("int16"),
    DataType.INT: np.dtype("int32"),
    DataType.INT64: np.dtype("int64"),
    DataType.FLOAT: np.dtype("float32"),
    DataType.DOUBLE: np.dtype("float64"),
    DataType.UBYTE: np.dtype("uint8"),
    DataType.USHORT: np.dtype("uint16"),
    DataType.UINT: np.dtype("uint32"),
    DataType.UINT64: np.dtype("uint64"),
}


class MetadataSource(Protocol):
    name: str
    datatype: DataType
    units: str
    attributes: Mapping[str, str]


@dataclass
class AttributeSet:
    """
    Name, type, units and attributes of a dataset, file, axis or variable.

    Attributes are split into "key" attributes, whose names appear in
    ``key_attribute_names``, and "other" attributes. Equality ignores the
    order in which attributes were inserted.
    """

    name: str = ""
    datatype: DataType = DataType.NONE
    units: str = ""
    key_attributes: dict[str, str] = field(default_factory=dict)
    other_attributes: dict[str, str] = field(default_factory=dict)
    key_attribute_names: frozenset[str] = field(
        default=VARIABLE_KEY_ATTRIBUTES, compare=False, repr=False
    )
    case_sensitive: bool = field(default=True, compare=False, repr=False)
    entity: str = field(default="Variable", compare=False, repr=False)

    @classmethod
    def for_variable(cls, name: str = "", entity: str = "Variable") -> "AttributeSet":
        return cls(name=name, entity=entity)

    @classmethod
    def for_dataset(cls, name: str = "", entity: str = "File") -> "AttributeSet":
        return cls(
            name=name,
            key_attribute_names=DATASET_KEY_ATTRIBUTES,
            case_sensitive=False,
            entity=entity,
        )

    @property
    def attributes(self) -> dict[str, str]:
        """
        All attributes, key attributes first
        """
        return {**self.key_attributes, **self.other_attributes}

    def describe(self) -> str:
        return f'{self.entity} "{self.name}"'

    def is_key_attribute(self, key: str) -> bool:
        if not self.case_sensitive:
            key = key.lower()
        return key in self.key_attribute_names

    def insert_attribute(self, key: str, value: str) -> None:
        """
        Store an attribute, classifying it as a key or other attribute
        """
        if self.is_key_attribute(key):
            self.other_attributes.pop(key, None)
            self.key_attributes[key] = value
        else:
            self.key_attributes.pop(key, None)
            self.other_attributes[key] = value

    def merge_from_source(
        self, source: MetadataSource, check_consistency: bool
    ) -> None:
        """
        Populate from, or check consistency against, the metadata of a variable

        Parameters
        ----------
        source: MetadataSource
            Object exposing ``name``, ``datatype``, ``units`` and ``attributes``
        check_consistency: bool
            If False, store the metadata. If True, compare it with what is
            already stored.

        Raises
        ------
        InconsistentMetadataError
            If ``check_consistency`` and the type, units or any attribute differ
        """
        if not check_consistency:
            self.name = source.name
        elif source.name != self.name:
            raise ValueError(
                f'Cannot check "{source.name}" for consistency against "{self.name}"'
            )

        if not check_consistency:
            self.datatype = source.datatype
        elif source.datatype != self.datatype:
            raise InconsistentMetadataError(
                f"{self.describe()} has inconsistent type across files"
            )

        if not check_consistency:
            self.units = source.units
        elif source.units != self.units:
            raise InconsistentMetadataError(
                f"{self.describe()} has inconsistent units across files"
            )

        self.merge_attributes(source.attributes, check_consistency)

    def merge_attributes(
        self, attributes: Mapping[str, str], check_consistency: bool
    ) -> None:
        """
        Populate from, or check consistency against, a list of attributes.
        The "units" attribute is skipped.
        """
        for key, value in attributes.items():
            if key == "units":
                continue

            if not check_consistency:
                self.insert_attribute(key, value)
                continue

            if key in self.key_attributes:
                stored = self.key_attributes[key]
            elif key in self.other_attributes:
                stored = self.other_attributes[key]
            else:
                raise InconsistentMetadataError(
                    f'{self.describe()} has inconsistent appearance of attribute "{key}" across files'
                )

            if stored != value:
                raise InconsistentMetadataError(
                    f'{self.describe()} has inconsistent value of "{key}" across files'
                )

    def remove_redundant_other_attributes(self, master: "AttributeSet") -> None:
        """
        Drop other attributes that are already recorded in ``master``
        """
        for key in master.other_attributes:
            self.other_attributes.pop(key, None)
