from __future__ import annotations

import argparse
import json
import os
from typing import Any, Dict, List, Optional

from .common import PrintLogger
from .config import load_config
from .discriminators import DiscriminatorFixError, run as run_fix_discriminator, summarize
from .families import FamilyRegistry, filter_families
from .metadata import build_metadata_resolver
from .tools.sqlalchemy import SQLAlchemyTool


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="eav-model")
    commands = parser.add_subparsers(dest="command", required=True)
    fix = commands.add_parser(
        "fix-discriminator",
        help=(
            "Updates the database ensuring each data in the database has the proper discriminator "
            "corresponding to the data_class of the family in the model"
        ),
    )
    fix.add_argument(
        "--config",
        default=os.environ.get("EAV_MODEL_CONFIG", "eav_model.json"),
        help="Path to the model configuration file (default: $EAV_MODEL_CONFIG or eav_model.json)",
    )
    fix.add_argument("--only-families", help="Comma separated family codes to process", default=None)
    fix.add_argument(
        "--output-json",
        help="Optional path to write the per-family results as JSON",
        default=None,
    )
    return parser.parse_args(argv)


def _fix_discriminator(args: argparse.Namespace, cfg: Dict[str, Any], logger: PrintLogger) -> None:
    registry = FamilyRegistry.from_config(cfg)
    families = filter_families(registry.get_families(), args.only_families)
    if args.only_families and not families:
        logger.warn("no_families_selected", value=str(args.only_families))
    resolver = build_metadata_resolver(cfg)
    tool = SQLAlchemyTool.from_config(cfg)
    try:
        results = run_fix_discriminator(families, resolver, tool, logger=logger)
    except DiscriminatorFixError as exc:
        if args.output_json:
            _write_results(args.output_json, exc.processed, error=str(exc))
        raise
    finally:
        tool.stop()
    if args.output_json:
        _write_results(args.output_json, results)


def _write_results(path: str, results, error: Optional[str] = None) -> None:
    payload: Dict[str, Any] = {
        "status": "failed" if error else "completed",
        "summary": summarize(results),
        "families": [result.to_dict() for result in results],
    }
    if error:
        payload["error"] = error
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, sort_keys=True)


def run_cli(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    cfg = load_config(args.config)
    runtime = cfg["runtime"]
    logger = PrintLogger(
        job_name=runtime.get("job_name", "eav_maintenance"),
        file_path=runtime.get("log_file"),
        level=runtime.get("log_level", "INFO"),
    )
    if args.command == "fix-discriminator":
        _fix_discriminator(args, cfg, logger)


__all__ = ["parse_args", "run_cli"]
