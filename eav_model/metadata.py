from __future__ import annotations

import importlib
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol, Union

from sqlalchemy import Column, inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Mapper

DataClassRef = Union[str, type]


class MetadataResolutionError(ValueError):
    """Raised when storage metadata cannot be resolved for a data class."""


@dataclass(frozen=True)
class StorageMetadata:
    table_name: str
    discriminator_column: Optional[str]
    discriminator_value: Optional[str]
    family_column: str

    @property
    def is_polymorphic(self) -> bool:
        return bool(self.discriminator_column)


class MetadataResolver(Protocol):
    def resolve_storage_metadata(self, data_class: DataClassRef) -> StorageMetadata:
        ...


class ConfigMetadataResolver:
    """Storage metadata declared in the ``data_classes`` configuration block."""

    def __init__(self, data_classes: Mapping[str, Mapping[str, Any]]) -> None:
        self._data_classes = dict(data_classes or {})

    def knows(self, data_class: DataClassRef) -> bool:
        return isinstance(data_class, str) and data_class in self._data_classes

    def resolve_storage_metadata(self, data_class: DataClassRef) -> StorageMetadata:
        if not self.knows(data_class):
            raise MetadataResolutionError(f"No storage metadata configured for data class {data_class!r}")
        entry = self._data_classes[data_class]  # type: ignore[index]
        table = entry.get("table")
        if not table:
            raise MetadataResolutionError(f"data_classes.{data_class}.table is required")
        discriminator_column = entry.get("discriminator_column") or None
        discriminator_value = entry.get("discriminator_value")
        if discriminator_column and discriminator_value is None:
            raise MetadataResolutionError(
                f"data_classes.{data_class}.discriminator_value is required with a discriminator column"
            )
        return StorageMetadata(
            table_name=str(table),
            discriminator_column=discriminator_column,
            discriminator_value=None if discriminator_value is None else str(discriminator_value),
            family_column=str(entry.get("family_column") or "family"),
        )


class MapperMetadataResolver:
    """
    Storage metadata read from SQLAlchemy mapped classes.

    The data class may be the mapped class itself, a name registered in
    ``classes`` or an import path (``package.module:Class`` or
    ``package.module.Class``). The discriminator is the mapper's
    ``polymorphic_on`` column and the expected value its
    ``polymorphic_identity``; the family column backs ``family_attribute``.
    """

    def __init__(self, family_attribute: str = "family", classes: Optional[Mapping[str, type]] = None) -> None:
        self.family_attribute = family_attribute
        self._classes: Dict[str, type] = dict(classes or {})

    def _load_class(self, data_class: DataClassRef) -> type:
        if not data_class:
            raise MetadataResolutionError("Family has no data class")
        if isinstance(data_class, type):
            return data_class
        if data_class in self._classes:
            return self._classes[data_class]
        if ":" in data_class:
            module_name, _, attr = data_class.partition(":")
        else:
            module_name, _, attr = data_class.rpartition(".")
        if not module_name or not attr:
            raise MetadataResolutionError(f"Unknown data class {data_class!r}")
        try:
            module = importlib.import_module(module_name)
        except ImportError as exc:
            raise MetadataResolutionError(f"Unable to import data class {data_class!r}: {exc}") from exc
        try:
            return getattr(module, attr)
        except AttributeError as exc:
            raise MetadataResolutionError(f"Module {module_name!r} has no attribute {attr!r}") from exc

    def resolve_storage_metadata(self, data_class: DataClassRef) -> StorageMetadata:
        cls = self._load_class(data_class)
        try:
            mapper = inspect(cls)
        except NoInspectionAvailable as exc:
            raise MetadataResolutionError(f"{data_class!r} is not a mapped class") from exc
        if not isinstance(mapper, Mapper):
            raise MetadataResolutionError(f"{data_class!r} is not a mapped class")
        column_attrs = mapper.column_attrs
        if self.family_attribute not in column_attrs:
            raise MetadataResolutionError(
                f"{mapper.class_.__name__} has no mapped column for attribute {self.family_attribute!r}"
            )
        family_column = column_attrs[self.family_attribute].columns[0]
        discriminator = mapper.polymorphic_on
        if discriminator is None:
            return StorageMetadata(
                table_name=mapper.local_table.name,
                discriminator_column=None,
                discriminator_value=None,
                family_column=family_column.name,
            )
        if not isinstance(discriminator, Column):
            raise MetadataResolutionError(
                f"{mapper.class_.__name__} discriminates on an expression, not a column"
            )
        if mapper.polymorphic_identity is None:
            raise MetadataResolutionError(f"{mapper.class_.__name__} has no polymorphic identity")
        return StorageMetadata(
            table_name=discriminator.table.name,
            discriminator_column=discriminator.name,
            discriminator_value=str(mapper.polymorphic_identity),
            family_column=family_column.name,
        )


class ChainedMetadataResolver:
    """Configured data classes first, mapped classes otherwise."""

    def __init__(self, config_resolver: ConfigMetadataResolver, mapper_resolver: MapperMetadataResolver) -> None:
        self.config_resolver = config_resolver
        self.mapper_resolver = mapper_resolver

    def resolve_storage_metadata(self, data_class: DataClassRef) -> StorageMetadata:
        if data_class is None:
            raise MetadataResolutionError("Family has no data class")
        if self.config_resolver.knows(data_class):
            return self.config_resolver.resolve_storage_metadata(data_class)
        return self.mapper_resolver.resolve_storage_metadata(data_class)


def build_metadata_resolver(
    cfg: Dict[str, Any],
    classes: Optional[Mapping[str, type]] = None,
) -> ChainedMetadataResolver:
    runtime = cfg.get("runtime", {})
    return ChainedMetadataResolver(
        ConfigMetadataResolver(cfg.get("data_classes") or {}),
        MapperMetadataResolver(
            family_attribute=runtime.get("family_attribute") or "family",
            classes=classes,
        ),
    )


__all__ = [
    "ChainedMetadataResolver",
    "ConfigMetadataResolver",
    "MapperMetadataResolver",
    "MetadataResolutionError",
    "MetadataResolver",
    "StorageMetadata",
    "build_metadata_resolver",
]
