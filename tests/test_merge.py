import pytest

from reconciler.config.models import KeyProfile, MergeOptions, MergeResolution, SOURCE_FILE_COLUMN
from reconciler.config.rules import ConflictRules, PatternRule
from reconciler.core.merge import (
    analyze_merge_keys,
    apply_resolutions,
    concatenate_files,
    default_resolutions,
    merge_files,
    prefer_file_resolutions
)


def _values(conflict_field):
    return [(item.file_name, item.value) for item in conflict_field.values]


def test_conflicting_name_defers_record(make_table):
    a = make_table("A", [{"id": 1, "name": "X"}])
    b = make_table("B", [{"id": 1, "name": "Y"}])
    result = merge_files([a, b], ["id"], MergeOptions(add_source_column=False))

    assert result.merged_data == []
    assert len(result.conflicts) == 1
    conflict = result.conflicts[0]
    assert conflict.primary_key_values == {"id": 1}
    assert [f.column for f in conflict.conflicting_fields] == ["name"]
    assert _values(conflict.conflicting_fields[0]) == [("A", "X"), ("B", "Y")]


def test_single_table_merges_to_itself(make_table):
    table = make_table("T", [
        {"name": "Ann", "id": "1"},
        {"name": "Bob", "id": "2"},
    ])
    result = merge_files([table], ["id"])
    assert result.merged_data == table.records
    assert result.conflicts == []
    assert list(result.merged_data[0]) == ["id", "name"]


def test_headers_union_and_source_column(make_table):
    a = make_table("A", [{"id": "1", "name": "X"}])
    b = make_table("B", [{"id": "2", "email": "b@example.org"}])
    result = merge_files([a, b], ["id"], MergeOptions(add_source_column=True))

    assert result.headers == ["id", "name", "email", SOURCE_FILE_COLUMN]
    assert [r[SOURCE_FILE_COLUMN] for r in result.merged_data] == ["A", "B"]


def test_null_values_do_not_conflict(make_table):
    a = make_table("A", [{"id": "1", "name": "X", "city": float("nan")}])
    b = make_table("B", [{"id": "1", "name": None, "city": "Paris"}])
    result = merge_files([a, b], ["id"])
    assert result.conflicts == []
    assert result.merged_data[0]["name"] == "X"


def test_empty_string_conflicts_unless_treated_as_absent(make_table):
    a = make_table("A", [{"id": "1", "name": ""}])
    b = make_table("B", [{"id": "1", "name": "Y"}])

    result = merge_files([a, b], ["id"])
    assert result.merged_data == []
    assert len(result.conflicts) == 1
    assert _values(result.conflicts[0].conflicting_fields[0]) == [("A", ""), ("B", "Y")]

    options = MergeOptions(blank_strings_absent=True)
    result = merge_files([a, b], ["id"], options)
    assert result.conflicts == []
    assert result.merged_data == [{"id": "1", "name": ""}]


def test_first_available_value_respects_blank_policy(make_table):
    a = make_table("A", [{"id": "1", "name": "X", "city": ""}])
    b = make_table("B", [{"id": "1", "name": "Y", "city": "Paris"}])
    tables = [a, b]

    options = MergeOptions(
        conflict_rules=ConflictRules(exclude_columns=["city"]),
        blank_strings_absent=True
    )
    result = merge_files(tables, ["id"], options)
    rows = apply_resolutions(result, tables, ["id"], [], options)
    assert rows == [{"id": "1", "name": "X", "city": "Paris"}]

    options = MergeOptions(conflict_rules=ConflictRules(exclude_columns=["city"]))
    result = merge_files(tables, ["id"], options)
    rows = apply_resolutions(result, tables, ["id"], [], options)
    assert rows == [{"id": "1", "name": "X", "city": ""}]


def test_numbers_and_strings_compare_as_text(make_table):
    a = make_table("A", [{"id": "1", "qty": 5.0}])
    b = make_table("B", [{"id": "1", "qty": "5"}])
    assert merge_files([a, b], ["id"]).conflicts == []


def test_rows_without_key_are_dropped_and_counted(make_table):
    table = make_table("T", [
        {"id": None, "name": "nobody"},
        {"id": "", "name": "empty"},
        {"id": "1", "name": "one"},
    ])
    result = merge_files([table], ["id"])
    assert result.merged_data == [{"id": "1", "name": "one"}]
    assert result.dropped_rows == 2


def test_all_blank_multi_column_key_is_kept(make_table):
    table = make_table("T", [
        {"k1": "", "k2": "", "v": "x"},
        {"k1": None, "k2": "", "v": "x"},
    ])
    result = merge_files([table], ["k1", "k2"])
    assert result.dropped_rows == 0
    assert result.merged_data == [{"k1": "", "k2": "", "v": "x"}]


def test_no_key_columns_drops_everything(make_table):
    table = make_table("T", [{"id": "1"}])
    result = merge_files([table], [])
    assert result.merged_data == []
    assert result.dropped_rows == 1


def test_conflict_values_are_deduplicated(make_table):
    a = make_table("A", [{"id": "1", "name": "X"}])
    b = make_table("B", [{"id": "1", "name": "Y"}])
    c = make_table("C", [{"id": "1", "name": "Z"}])
    d = make_table("D", [{"id": "1", "name": "X"}])
    result = merge_files([a, b, c, d], ["id"])

    field = result.conflicts[0].conflicting_fields[0]
    assert _values(field) == [("A", "X"), ("B", "Y"), ("C", "Z")]


def test_conflict_ids_are_local_to_each_merge(make_table):
    a = make_table("A", [{"id": "1", "v": "x"}, {"id": "2", "v": "x"}])
    b = make_table("B", [{"id": "1", "v": "y"}, {"id": "2", "v": "y"}])
    first = merge_files([a, b], ["id"])
    second = merge_files([a, b], ["id"])
    assert [c.id for c in first.conflicts] == [1, 2]
    assert [c.id for c in second.conflicts] == [1, 2]


def test_raw_keys_by_default_and_normalized_on_request(make_table):
    a = make_table("A", [{"id": "AB", "v": "1"}])
    b = make_table("B", [{"id": " AB ", "v": "2"}])

    raw = merge_files([a, b], ["id"])
    assert len(raw.merged_data) == 2

    normalized = merge_files([a, b], ["id"], MergeOptions(key_profile=KeyProfile()))
    assert normalized.merged_data == []
    assert len(normalized.conflicts) == 1


def test_conflict_rules_skip_excluded_columns(make_table):
    a = make_table("A", [{"id": "1", "name": "X", "updated_at": "2024-01-01"}])
    b = make_table("B", [{"id": "1", "name": "X", "updated_at": "2024-02-01"}])

    assert len(merge_files([a, b], ["id"]).conflicts) == 1

    options = MergeOptions(conflict_rules=ConflictRules(
        include_rules=[PatternRule(r"(?!updated_)")]
    ))
    result = merge_files([a, b], ["id"], options)
    assert result.conflicts == []
    assert len(result.merged_data) == 1

    options = MergeOptions(conflict_rules=ConflictRules(exclude_columns=["updated_at"]))
    assert merge_files([a, b], ["id"], options).conflicts == []


def test_apply_resolutions_appends_resolved_rows(make_table):
    a = make_table("A", [{"id": "1", "name": "X"}, {"id": "2", "name": "Solo"}])
    b = make_table("B", [{"id": "1", "name": "Y", "city": "Paris"}])
    tables = [a, b]
    options = MergeOptions(add_source_column=True)

    result = merge_files(tables, ["id"], options)
    conflict = result.conflicts[0]
    rows = apply_resolutions(
        result, tables, ["id"],
        [MergeResolution(conflict_id=conflict.id, values={"name": "Y"})],
        options
    )

    assert rows[0] == {"id": "2", "name": "Solo", SOURCE_FILE_COLUMN: "A"}
    assert rows[1] == {"id": "1", "name": "Y", "city": "Paris", SOURCE_FILE_COLUMN: "Multiple"}


def test_unresolved_conflict_keeps_first_value(make_table):
    a = make_table("A", [{"id": "1", "name": "X"}])
    b = make_table("B", [{"id": "1", "name": "Y"}])
    result = merge_files([a, b], ["id"])
    rows = apply_resolutions(result, [a, b], ["id"], [])
    assert rows == [{"id": "1", "name": "X"}]


def test_default_and_preferred_resolutions(make_table):
    a = make_table("A", [{"id": "1", "name": "X", "city": "Rome"}])
    b = make_table("B", [{"id": "1", "name": "Y", "city": "Oslo"}])
    c = make_table("C", [{"id": "1", "name": "Z", "city": "Rome"}])
    result = merge_files([a, b, c], ["id"])

    defaults = default_resolutions(result.conflicts)
    assert defaults[0].values == {"name": "X", "city": "Rome"}

    preferred = prefer_file_resolutions(result.conflicts, "C")
    assert preferred[0].values == {"name": "Z", "city": "Rome"}

    preferred = prefer_file_resolutions(result.conflicts, "B")
    assert preferred[0].values == {"name": "Y", "city": "Oslo"}


def test_analyze_merge_keys(make_table):
    a = make_table("A", [
        {"id": "1", "team": "red"},
        {"id": "2", "team": "red"},
        {"id": "3", "team": "blue"},
    ])
    b = make_table("B", [
        {"id": "2", "team": "red", "extra": "x"},
        {"id": "3", "team": "blue", "extra": "y"},
        {"id": "4", "team": "green", "extra": "z"},
    ])
    report = analyze_merge_keys([a, b])

    stats = {s.column_name: s for s in report.common_columns}
    assert list(stats) == ["id", "team"]
    assert stats["id"].overlap == pytest.approx(0.5)
    assert stats["id"].uniqueness == pytest.approx(1.0)
    assert stats["team"].uniqueness == pytest.approx(2 / 3)
    assert report.suggested_keys == ["id"]


def test_concatenate_pads_missing_cells(make_table):
    a = make_table("A", [{"id": "1", "name": "X"}])
    b = make_table("B", [{"id": "2", "email": "e"}])
    result = concatenate_files([a, b], add_source_column=True)

    assert result.headers == ["id", "name", "email", SOURCE_FILE_COLUMN]
    assert result.merged_data == [
        {"id": "1", "name": "X", "email": "", SOURCE_FILE_COLUMN: "A"},
        {"id": "2", "name": "", "email": "e", SOURCE_FILE_COLUMN: "B"},
    ]


def test_merge_does_not_mutate_inputs(make_table):
    a = make_table("A", [{"id": "1", "name": "X"}])
    b = make_table("B", [{"id": "1", "name": "Y"}])
    merge_files([a, b], ["id"], MergeOptions(add_source_column=True))
    assert a.records == [{"id": "1", "name": "X"}]
    assert b.records == [{"id": "1", "name": "Y"}]
