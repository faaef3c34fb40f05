import pytest

from reconciler.config.models import MatchingMode, MatchOptions
from reconciler.core.cluster import ClusterMatcher, cluster, rows_match


def _sizes(groups):
    return [group.size for group in groups]


def test_exact_clustering_folds_case_when_asked():
    records = [{"A": "foo"}, {"A": "FOO"}, {"A": "bar"}]
    options = MatchOptions(case_sensitive=False, matching_mode=MatchingMode.EXACT, fuzzy_threshold=0.1)
    groups = cluster(records, ["A"], options)
    assert _sizes(groups) == [2, 1]
    assert groups[0].representative is records[0]
    assert groups[0].records == [records[0], records[1]]


def test_exact_clustering_respects_case_sensitivity():
    records = [{"A": "foo"}, {"A": "FOO"}]
    options = MatchOptions(case_sensitive=True)
    assert _sizes(cluster(records, ["A"], options)) == [1, 1]


def test_empty_columns_never_match():
    score = rows_match({"A": "x"}, {"A": "x"}, [], MatchOptions())
    assert not score.is_match
    assert score.confidence == 0.0
    assert _sizes(cluster([{"A": "x"}, {"A": "x"}], [], MatchOptions())) == [1, 1]


def test_fuzzy_confidence_is_mean_of_columns():
    options = MatchOptions(matching_mode="fuzzy", fuzzy_threshold=0.7)
    score = rows_match(
        {"a": "abcd", "b": "same"},
        {"a": "abcx", "b": "same"},
        ["a", "b"],
        options
    )
    assert score.is_match
    assert score.confidence == pytest.approx(0.875)


def test_fuzzy_fails_when_any_column_is_below_threshold():
    options = MatchOptions(matching_mode=MatchingMode.FUZZY, fuzzy_threshold=0.8)
    score = rows_match(
        {"a": "same", "b": "abcd"},
        {"a": "same", "b": "abcx"},
        ["a", "b"],
        options
    )
    assert not score.is_match


def test_fuzzy_and_phonetic_always_fold_case():
    fuzzy = MatchOptions(case_sensitive=True, matching_mode=MatchingMode.FUZZY, fuzzy_threshold=1.0)
    assert rows_match({"a": "ABC"}, {"a": "abc"}, ["a"], fuzzy).is_match

    phonetic = MatchOptions(case_sensitive=True, matching_mode=MatchingMode.PHONETIC)
    score = rows_match({"a": "Robert"}, {"a": "rupert"}, ["a"], phonetic)
    assert score == (True, 1.0)


def test_phonetic_requires_every_column():
    options = MatchOptions(matching_mode=MatchingMode.PHONETIC)
    assert not rows_match(
        {"first": "Robert", "last": "Smith"},
        {"first": "Rupert", "last": "Jones"},
        ["first", "last"],
        options
    ).is_match


def test_members_only_need_to_match_the_representative():
    # abcx and abyd both match abcd at 0.75 but only reach 0.5 with each other
    records = [{"n": "abcd"}, {"n": "abcx"}, {"n": "abyd"}]
    options = MatchOptions(matching_mode=MatchingMode.FUZZY, fuzzy_threshold=0.75)
    groups = cluster(records, ["n"], options)
    assert _sizes(groups) == [3]
    assert [member.confidence for member in groups[0].members] == [1.0, 0.75, 0.75]


def test_mutual_clustering_requires_matching_every_member():
    records = [{"n": "abcd"}, {"n": "abcx"}, {"n": "abyd"}]
    options = MatchOptions(
        matching_mode=MatchingMode.FUZZY,
        fuzzy_threshold=0.75,
        mutual_clustering=True
    )
    groups = cluster(records, ["n"], options)
    assert _sizes(groups) == [2, 1]
    assert groups[1].representative is records[2]


def test_raising_threshold_never_adds_matches():
    names = ["jonathan", "jonathon", "johnathan", "jon", "nathan", "jonas", "jona"]
    records = [{"n": name} for name in names]

    matched = []
    for threshold in (0.3, 0.5, 0.7, 0.9, 1.0):
        options = MatchOptions(matching_mode=MatchingMode.FUZZY, fuzzy_threshold=threshold)
        matcher = ClusterMatcher(["n"], options)
        matched.append(sum(
            matcher.rows_match(a, b).is_match
            for i, a in enumerate(records)
            for b in records[i + 1:]
        ))

    assert matched == sorted(matched, reverse=True)
