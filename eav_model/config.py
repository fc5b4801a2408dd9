from __future__ import annotations

import json
from typing import Any, Dict


def load_config(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        cfg: Dict[str, Any] = json.load(handle)
    validate_config(cfg)
    return cfg


def validate_config(cfg: Dict[str, Any]) -> None:
    def _validate_family(code: str, entry: Any) -> None:
        if entry is None:
            return
        if not isinstance(entry, dict):
            raise ValueError(f"families.{code} must be an object")
        data_class = entry.get("data_class")
        if data_class is not None and not isinstance(data_class, str):
            raise ValueError(f"families.{code}.data_class must be a string")
        if "instantiable" in entry and not isinstance(entry["instantiable"], bool):
            raise ValueError(f"families.{code}.instantiable must be a boolean")
        parent = entry.get("parent")
        if parent is not None and parent not in cfg["families"]:
            raise ValueError(f"families.{code}.parent references unknown family '{parent}'")

    def _validate_data_class(name: str, entry: Any) -> None:
        if not isinstance(entry, dict):
            raise ValueError(f"data_classes.{name} must be an object")
        for key in ["table", "discriminator_column", "discriminator_value", "family_column"]:
            value = entry.get(key)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"data_classes.{name}.{key} must be a string")

    for key in ["runtime", "families"]:
        if key not in cfg:
            raise ValueError(f"Missing config key: {key}")
    runtime = cfg["runtime"]
    if not isinstance(runtime, dict):
        raise ValueError("runtime must be an object")
    sa_cfg = runtime.get("sqlalchemy")
    if not isinstance(sa_cfg, dict) or not sa_cfg.get("url"):
        raise ValueError("Missing runtime.sqlalchemy.url")
    family_attribute = runtime.get("family_attribute")
    if family_attribute is not None and not isinstance(family_attribute, str):
        raise ValueError("runtime.family_attribute must be a string when provided")
    if not isinstance(cfg["families"], dict):
        raise ValueError("families must be an object keyed by family code")
    for code, entry in cfg["families"].items():
        _validate_family(code, entry)
    data_classes = cfg.get("data_classes")
    if data_classes is not None:
        if not isinstance(data_classes, dict):
            raise ValueError("data_classes must be an object when provided")
        for name, entry in data_classes.items():
            _validate_data_class(name, entry)


__all__ = ["load_config", "validate_config"]
