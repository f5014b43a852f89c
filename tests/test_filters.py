import pandas as pd
import pytest

from core.filters import (
    FilterConfig,
    active_filter_count,
    apply_filters,
    filter_options,
    is_default,
    normalize_filters,
)


def ids(df):
    return list(df["id"])


def test_default_config_is_identity(manufacturers):
    out = apply_filters(manufacturers, FilterConfig())
    pd.testing.assert_frame_equal(out, manufacturers)
    assert out is not manufacturers


def test_state_filter_returns_only_matching_records(manufacturers):
    out = apply_filters(manufacturers, FilterConfig(states=["CA"]))
    assert ids(out) == ["m01", "m02", "m03"]
    assert set(out["state"]) == {"CA"}


def test_capability_filter_ignores_empty_materials(manufacturers):
    out = apply_filters(manufacturers, FilterConfig(capabilities=["Welding"], materials=[]))
    assert ids(out) == ["m01", "m02", "m04", "m09"]
    assert all("Welding" in caps for caps in out["capabilities"])


def test_set_filters_match_on_any_overlap(manufacturers):
    out = apply_filters(manufacturers, FilterConfig(capabilities=["Welding", "Casting"]))
    assert ids(out) == ["m01", "m02", "m04", "m06", "m09"]


def test_predicates_are_combined_with_and(manufacturers):
    out = apply_filters(manufacturers, FilterConfig(states=["CA"], capabilities=["Welding"]))
    assert ids(out) == ["m01", "m02"]


def test_result_is_ordered_subsequence_of_input(manufacturers):
    config = FilterConfig(materials=["Steel"])
    out = apply_filters(manufacturers, config)
    positions = [ids(manufacturers).index(i) for i in ids(out)]
    assert positions == sorted(positions)
    assert set(ids(out)) <= set(ids(manufacturers))


def test_filtering_is_idempotent(manufacturers):
    config = FilterConfig(capabilities=["Welding"], rating_range="4.0+", capacity_range="medium")
    once = apply_filters(manufacturers, config)
    twice = apply_filters(once, config)
    assert ids(once) == ids(twice)


def test_search_is_case_insensitive_and_covers_lists(manufacturers):
    assert ids(apply_filters(manufacturers, FilterConfig(search="ACME"))) == ["m01"]
    assert ids(apply_filters(manufacturers, FilterConfig(search="steel"))) == ["m01", "m04", "m07", "m09"]
    assert ids(apply_filters(manufacturers, FilterConfig(search="denver"))) == ["m06"]


@pytest.mark.parametrize(
    "label, expected",
    [
        ("1-25", ["m01", "m08"]),
        ("26-50", ["m02", "m06"]),
        ("251-500", ["m03", "m05"]),
        ("500+", ["m03", "m09"]),
    ],
)
def test_employee_buckets(manufacturers, label, expected):
    assert ids(apply_filters(manufacturers, FilterConfig(employee_range=label))) == expected


@pytest.mark.parametrize(
    "label, expected",
    [
        ("0-1M", ["m01", "m08"]),
        ("1M-10M", ["m02", "m06", "m07"]),
        ("50M-100M", ["m05"]),
        ("100M+", ["m03", "m09"]),
    ],
)
def test_revenue_buckets(manufacturers, label, expected):
    assert ids(apply_filters(manufacturers, FilterConfig(revenue_range=label))) == expected


@pytest.mark.parametrize(
    "label, expected",
    [
        ("low", ["m01", "m08"]),
        ("medium", ["m02", "m04", "m06"]),
        ("high", ["m03", "m05", "m07", "m09"]),
    ],
)
def test_capacity_buckets(manufacturers, label, expected):
    assert ids(apply_filters(manufacturers, FilterConfig(capacity_range=label))) == expected


@pytest.mark.parametrize(
    "label, expected",
    [
        ("0-5", ["m01", "m08"]),
        ("6-15", ["m02", "m05"]),
        ("16-30", ["m03", "m07"]),
        ("30+", ["m04", "m06", "m09"]),
    ],
)
def test_year_established_buckets_use_company_age(manufacturers, label, expected):
    out = apply_filters(manufacturers, FilterConfig(year_established_range=label), current_year=2025)
    assert ids(out) == expected


def test_rating_floor_is_inclusive(manufacturers):
    out = apply_filters(manufacturers, FilterConfig(rating_range="4.5+"))
    assert ids(out) == ["m01", "m04", "m07", "m09"]


def test_sustainability_minimum_is_inclusive(manufacturers):
    out = apply_filters(manufacturers, FilterConfig(sustainability_min=80))
    assert ids(out) == ["m01", "m03", "m09"]


def test_diversity_flag_is_tri_state(manufacturers):
    assert ids(apply_filters(manufacturers, FilterConfig(diversity_flag=True))) == ["m01", "m04", "m07"]
    no = ids(apply_filters(manufacturers, FilterConfig(diversity_flag=False)))
    assert "m06" not in no and "m10" not in no
    assert len(apply_filters(manufacturers, FilterConfig(diversity_flag=None))) == len(manufacturers)


def test_missing_attribute_fails_filter_without_raising(manufacturers):
    assert "m06" not in ids(apply_filters(manufacturers, FilterConfig(rating_range="3.5+")))
    for label in ("1-25", "26-50", "51-100", "101-250", "251-500", "500+"):
        assert "m10" not in ids(apply_filters(manufacturers, FilterConfig(employee_range=label)))
    assert "m10" not in ids(apply_filters(manufacturers, FilterConfig(sustainability_min=1)))


def test_empty_frame_passes_through(manufacturers):
    empty = manufacturers.iloc[0:0]
    assert apply_filters(empty, FilterConfig(states=["CA"])).empty


def test_normalize_filters_falls_back_on_unknown_labels():
    config = normalize_filters(
        {
            "search": "  weld ",
            "states": ["CA", "CA", "", None],
            "employee_range": "huge",
            "rating_range": "4.0+",
            "diversity_flag": "true",
            "sustainability_min": -5,
        }
    )
    assert config.search == "  weld "
    assert config.states == ["CA"]
    assert config.employee_range == "all"
    assert config.rating_range == "4.0+"
    assert config.diversity_flag is True
    assert config.sustainability_min == 0


def test_normalize_filters_keeps_search_verbatim():
    assert normalize_filters({"search": 42}).search == "42"
    assert normalize_filters({"search": None}).search == ""
    config = normalize_filters({"search": " "})
    assert config.search == " "
    assert active_filter_count(config) == 1


def test_normalize_filters_empty_is_default():
    assert is_default(normalize_filters(None))
    assert is_default(normalize_filters({}))


def test_active_filter_count():
    config = FilterConfig(
        search="x",
        capabilities=["Welding", "Casting"],
        states=["CA"],
        rating_range="4.0+",
        diversity_flag=False,
        sustainability_min=10,
    )
    assert active_filter_count(config) == 7
    assert active_filter_count(FilterConfig()) == 0


def test_filter_options_lists_vocabularies(manufacturers):
    options = filter_options(manufacturers)
    assert options["states"] == ["CA", "CO", "MI", "NC", "NE", "NY", "PA", "TX"]
    assert "Welding" in options["capabilities"]
    assert options["certifications"] == sorted(options["certifications"])
    assert options["buckets"]["capacity_range"][0] == {"value": "all", "label": "All Levels"}
