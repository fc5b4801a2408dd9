from contextlib import contextmanager
from types import SimpleNamespace

import pytest
from sqlalchemy import Column, Integer, MetaData, Table, create_engine

from eav_model.discriminators import (
    DiscriminatorFixError,
    FamilyFixResult,
    build_update_sql,
    fix_family,
    run,
    summarize,
)
from eav_model.families import Family
from eav_model.metadata import ConfigMetadataResolver, MapperMetadataResolver, MetadataResolutionError
from eav_model.tools import RowCountUnavailableError
from eav_model.tools.sqlalchemy import SQLAlchemyTool


class _DummyLogger:
    def __init__(self):
        self.events = []

    def log(self, level, msg, **fields):
        self.events.append((level, msg, fields))

    def debug(self, msg, **fields):
        self.log("DEBUG", msg, **fields)

    def info(self, msg, **fields):
        self.log("INFO", msg, **fields)

    def error(self, msg, **fields):
        self.log("ERROR", msg, **fields)


class _RecordingTool:
    def __init__(self, counts=None):
        self.calls = []
        self._counts = counts or {}

    def execute_update(self, sql, params=None):
        self.calls.append((sql, dict(params or {})))
        return self._counts.get(params["familyCode"], 0)


class _UnknownRowCountEngine:
    @contextmanager
    def begin(self):
        yield SimpleNamespace(execute=lambda *_args: SimpleNamespace(rowcount=-1))

    def dispose(self):
        pass


DATA_CLASSES = {
    "Product": {
        "table": "product",
        "discriminator_column": "type",
        "discriminator_value": "electronics",
        "family_column": "family",
    },
    "Book": {
        "table": "book",
        "discriminator_column": "type",
        "discriminator_value": "book",
        "family_column": "family",
    },
    "Furniture": {"table": "furniture", "discriminator_column": None},
}


@pytest.fixture
def tool(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'eav.db'}")
    with engine.begin() as conn:
        conn.exec_driver_sql("CREATE TABLE product (id INTEGER PRIMARY KEY, family VARCHAR(64), type VARCHAR(64))")
    sa_tool = SQLAlchemyTool(engine)
    rows = [
        (1, "electronics", "misc"),
        (2, "electronics", "misc"),
        (3, "electronics", "misc"),
        (4, "electronics", "electronics"),
        (5, "toys", "misc"),
    ]
    for row_id, family, discr in rows:
        sa_tool.execute_update(
            "INSERT INTO product (id, family, type) VALUES (:id, :family, :type)",
            {"id": row_id, "family": family, "type": discr},
        )
    yield sa_tool
    sa_tool.stop()


def _types(sa_tool):
    with sa_tool.engine.connect() as conn:
        return [row[0] for row in conn.exec_driver_sql("SELECT type FROM product ORDER BY id")]


def test_build_update_sql_quotes_identifiers_and_binds_values():
    sql = build_update_sql("product", "type", "family")

    assert sql == (
        "UPDATE `product`\n"
        "    SET `type` = :discrValue\n"
        "    WHERE `family` = :familyCode AND `type` != :discrValue"
    )


def test_non_instantiable_family_runs_nothing():
    recording = _RecordingTool()
    lines = []
    family = Family(code="electronics", data_class="Product", instantiable=False)

    result = fix_family(family, ConfigMetadataResolver(DATA_CLASSES), recording, logger=_DummyLogger(), writeln=lines.append)

    assert result is None
    assert recording.calls == []
    assert lines == []


def test_family_without_discriminator_column_runs_nothing():
    recording = _RecordingTool()
    lines = []
    family = Family(code="furniture", data_class="Furniture")

    result = fix_family(family, ConfigMetadataResolver(DATA_CLASSES), recording, logger=_DummyLogger(), writeln=lines.append)

    assert result is None
    assert recording.calls == []
    assert lines == []


def test_polymorphic_family_executes_one_bound_update():
    recording = _RecordingTool(counts={"electronics": 2})
    lines = []
    families = [
        Family(code="electronics", data_class="Product"),
        Family(code="base", data_class="Product", instantiable=False),
        Family(code="furniture", data_class="Furniture"),
    ]

    results = run(families, ConfigMetadataResolver(DATA_CLASSES), recording, logger=_DummyLogger(), writeln=lines.append)

    assert recording.calls == [
        (build_update_sql("product", "type", "family"), {"discrValue": "electronics", "familyCode": "electronics"})
    ]
    assert lines == ["2 data updated for family electronics"]
    assert [result.to_dict() for result in results] == [
        {"family": "electronics", "table": "product", "status": "updated", "updated": 2}
    ]


def test_fixes_drifted_rows_and_is_idempotent(tool):
    resolver = ConfigMetadataResolver(DATA_CLASSES)
    families = [Family(code="electronics", data_class="Product")]
    lines = []

    first = run(families, resolver, tool, logger=_DummyLogger(), writeln=lines.append)
    second = run(families, resolver, tool, logger=_DummyLogger(), writeln=lines.append)

    assert first[0].updated == 3
    assert second[0].updated == 0
    assert lines == [
        "3 data updated for family electronics",
        "No data to clean for family electronics",
    ]
    assert _types(tool) == ["electronics", "electronics", "electronics", "electronics", "misc"]


def test_execution_failure_stops_remaining_families(tool):
    resolver = ConfigMetadataResolver(DATA_CLASSES)
    families = [
        Family(code="electronics", data_class="Product"),
        Family(code="books", data_class="Book"),
        Family(code="gadgets", data_class="Product"),
    ]
    lines = []
    logger = _DummyLogger()

    with pytest.raises(DiscriminatorFixError) as exc:
        run(families, resolver, tool, logger=logger, writeln=lines.append)

    expected_sql = build_update_sql("book", "type", "family")
    assert expected_sql in str(exc.value)
    assert exc.value.family == "books"
    assert exc.value.sql == expected_sql
    assert [result.family for result in exc.value.processed] == ["electronics"]
    assert lines == ["3 data updated for family electronics"]
    assert not any(fields.get("family") == "gadgets" for _, _, fields in logger.events)
    assert _types(tool).count("electronics") == 4


def test_metadata_failure_aborts_run():
    recording = _RecordingTool()
    families = [
        Family(code="unknown", data_class="Missing"),
        Family(code="electronics", data_class="Product"),
    ]

    with pytest.raises(DiscriminatorFixError) as exc:
        run(families, ConfigMetadataResolver(DATA_CLASSES), recording, logger=_DummyLogger(), writeln=lambda _line: None)

    assert isinstance(exc.value.cause, MetadataResolutionError)
    assert exc.value.sql is None
    assert recording.calls == []


def test_summarize_counts_updated_rows():
    results = [
        FamilyFixResult(family="a", table="t", updated=3),
        FamilyFixResult(family="b", table="t", updated=0),
        FamilyFixResult(family="c", table="u", updated=1),
    ]

    assert summarize(results) == {"processed": 3, "updated_families": 2, "rows_updated": 4}
    assert results[1].status == "clean"
    assert results[1].message() == "No data to clean for family b"


def test_unmapped_table_data_class_aborts_with_structured_error():
    recording = _RecordingTool()
    product_table = Table("product", MetaData(), Column("id", Integer, primary_key=True))
    families = [
        Family(code="electronics", data_class="ProductTable"),
        Family(code="books", data_class="Book"),
    ]

    with pytest.raises(DiscriminatorFixError) as exc:
        run(
            families,
            MapperMetadataResolver(classes={"ProductTable": product_table}),
            recording,
            logger=_DummyLogger(),
            writeln=lambda _line: None,
        )

    assert exc.value.family == "electronics"
    assert isinstance(exc.value.cause, MetadataResolutionError)
    assert recording.calls == []


def test_unknown_row_count_aborts_instead_of_reporting_clean():
    lines = []
    families = [
        Family(code="electronics", data_class="Product"),
        Family(code="books", data_class="Book"),
    ]

    with pytest.raises(DiscriminatorFixError) as exc:
        run(
            families,
            ConfigMetadataResolver(DATA_CLASSES),
            SQLAlchemyTool(_UnknownRowCountEngine()),
            logger=_DummyLogger(),
            writeln=lines.append,
        )

    assert isinstance(exc.value.cause, RowCountUnavailableError)
    assert exc.value.sql == build_update_sql("product", "type", "family")
    assert lines == []
