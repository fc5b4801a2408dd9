"""
Realign the ORM discriminator of stored rows with the data class of their family.

Rows keep the family code they were written with, but the discriminator column
(the value the ORM uses to pick the class to hydrate) can drift when a family
is moved to another data class. For each instantiable family backed by
polymorphic storage, one UPDATE rewrites the discriminator of the rows that
belong to the family and do not already carry the expected value, so the
affected row count is exactly the number of rows fixed and a second run is a
no-op.

Statements run one at a time, each committed on its own. The first failure
stops the run; families handled before it keep their updates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from .common import PrintLogger
from .families import Family
from .metadata import MetadataResolutionError, MetadataResolver
from .tools.base import ExecutionTool, StatementExecutionError


@dataclass
class FamilyFixResult:
    family: str
    table: str
    updated: int

    @property
    def status(self) -> str:
        return "updated" if self.updated else "clean"

    def message(self) -> str:
        if self.updated:
            return f"{self.updated} data updated for family {self.family}"
        return f"No data to clean for family {self.family}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "family": self.family,
            "table": self.table,
            "status": self.status,
            "updated": self.updated,
        }


class DiscriminatorFixError(RuntimeError):
    """First failure of a run, with what was processed before it."""

    def __init__(
        self,
        family: str,
        cause: Exception,
        *,
        sql: Optional[str] = None,
        processed: Optional[List[FamilyFixResult]] = None,
    ) -> None:
        super().__init__(f"Failed to fix discriminator for family {family}: {cause}")
        self.family = family
        self.cause = cause
        self.sql = sql
        self.processed = list(processed or [])


def build_update_sql(table: str, discriminator_column: str, family_column: str) -> str:
    return (
        f"UPDATE `{table}`\n"
        f"    SET `{discriminator_column}` = :discrValue\n"
        f"    WHERE `{family_column}` = :familyCode AND `{discriminator_column}` != :discrValue"
    )


def fix_family(
    family: Family,
    resolver: MetadataResolver,
    tool: ExecutionTool,
    *,
    logger: PrintLogger,
    writeln: Callable[[str], Any] = print,
) -> Optional[FamilyFixResult]:
    if not family.is_instantiable():
        logger.debug("family_skipped", family=family.code, reason="not_instantiable")
        return None
    metadata = resolver.resolve_storage_metadata(family.data_class)
    if not metadata.discriminator_column:
        logger.debug("family_skipped", family=family.code, reason="no_discriminator_column")
        return None
    sql = build_update_sql(metadata.table_name, metadata.discriminator_column, metadata.family_column)
    count = tool.execute_update(
        sql,
        {"discrValue": metadata.discriminator_value, "familyCode": family.code},
    )
    result = FamilyFixResult(family=family.code, table=metadata.table_name, updated=count)
    logger.info(
        "discriminator_fixed" if count else "discriminator_clean",
        family=family.code,
        table=metadata.table_name,
        discriminator=metadata.discriminator_value,
        rows=count,
    )
    writeln(result.message())
    return result


def run(
    families: Iterable[Family],
    resolver: MetadataResolver,
    tool: ExecutionTool,
    *,
    logger: PrintLogger,
    writeln: Callable[[str], Any] = print,
) -> List[FamilyFixResult]:
    families = list(families)
    results: List[FamilyFixResult] = []
    logger.info("fix_discriminator_start", families=len(families))
    for family in families:
        try:
            result = fix_family(family, resolver, tool, logger=logger, writeln=writeln)
        except (MetadataResolutionError, StatementExecutionError) as exc:
            logger.error("fix_discriminator_failed", family=family.code, err=str(exc))
            raise DiscriminatorFixError(
                family.code,
                exc,
                sql=getattr(exc, "sql", None),
                processed=results,
            ) from exc
        if result is not None:
            results.append(result)
    summary = summarize(results)
    logger.info("fix_discriminator_end", **summary)
    return results


def summarize(results: Iterable[FamilyFixResult]) -> Dict[str, int]:
    processed = updated_families = rows = 0
    for result in results:
        processed += 1
        if result.updated:
            updated_families += 1
            rows += result.updated
    return {"processed": processed, "updated_families": updated_families, "rows_updated": rows}


__all__ = ["DiscriminatorFixError", "FamilyFixResult", "build_update_sql", "fix_family", "run", "summarize"]
