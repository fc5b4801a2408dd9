from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional


class MissingFamilyError(KeyError):
    """Raised when a family code is not registered."""


@dataclass(frozen=True)
class Family:
    """A type descriptor of the EAV model, identified by its code."""

    code: str
    data_class: Optional[str]
    instantiable: bool = True
    parent: Optional[str] = None

    def is_instantiable(self) -> bool:
        return self.instantiable


class FamilyRegistry:
    """Read-only, ordered collection of the configured families."""

    def __init__(self, families: Iterable[Family]) -> None:
        self._families: Dict[str, Family] = {}
        for family in families:
            if family.code in self._families:
                raise ValueError(f"Duplicate family code: {family.code}")
            self._families[family.code] = family

    def get_families(self) -> List[Family]:
        return list(self._families.values())

    def get_family(self, code: str) -> Family:
        try:
            return self._families[code]
        except KeyError:
            raise MissingFamilyError(f"No family with code {code}") from None

    def has_family(self, code: str) -> bool:
        return code in self._families

    def __len__(self) -> int:
        return len(self._families)

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "FamilyRegistry":
        families_cfg: Dict[str, Dict[str, Any]] = cfg.get("families") or {}

        def _data_class(code: str, seen: tuple) -> Optional[str]:
            if code in seen:
                raise ValueError(f"Family inheritance cycle: {' -> '.join(seen + (code,))}")
            if code not in families_cfg:
                raise ValueError(f"families.{seen[-1]}.parent references unknown family '{code}'")
            entry = families_cfg[code] or {}
            if entry.get("data_class"):
                return str(entry["data_class"])
            parent = entry.get("parent")
            if not parent:
                return None
            return _data_class(str(parent), seen + (code,))

        families: List[Family] = []
        for code, entry in families_cfg.items():
            entry = entry or {}
            parent = entry.get("parent")
            families.append(
                Family(
                    code=str(code),
                    data_class=_data_class(str(code), ()),
                    instantiable=bool(entry.get("instantiable", True)),
                    parent=str(parent) if parent else None,
                )
            )
        return cls(families)


def filter_families(families: Iterable[Family], only: Optional[str]) -> List[Family]:
    families = list(families)
    if not only:
        return families
    wanted = {entry.strip().lower() for entry in only.split(",") if entry.strip()}
    if not wanted:
        return families
    return [family for family in families if family.code.lower() in wanted]


__all__ = ["Family", "FamilyRegistry", "MissingFamilyError", "filter_families"]
