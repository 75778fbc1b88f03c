import pytest

from autodash.engine import STANDARD, parse_csv_text
from autodash.engine.core.types import CATEGORICAL, DATETIME, NUMERIC, TEXT
from autodash.engine.nodes.profile import infer_column_type, profile_column, profile_table


def _profiles(text, settings=STANDARD):
    return {profile.name: profile for profile in profile_table(parse_csv_text(text), settings)}


def test_numeric_and_categorical_stats():
    profiles = _profiles("a,b\n1,x\n2,y\n3,x\n")

    a = profiles["a"]
    assert a.inferred_type == NUMERIC
    assert a.stats["mean"] == 2
    assert a.stats["median"] == 2
    assert a.stats["min"] == 1
    assert a.stats["max"] == 3
    assert a.stats["std"] == pytest.approx((2 / 3) ** 0.5)

    b = profiles["b"]
    assert b.inferred_type == CATEGORICAL
    assert b.stats == {"mode": "x", "modeCount": 2}
    assert b.unique_value_count == 2


def test_median_is_upper_middle_for_even_counts():
    profiles = _profiles("v\n4\n1\n3\n2\n")
    assert profiles["v"].stats["median"] == 3


def test_mode_tie_keeps_first_seen_value():
    profiles = _profiles("c\nb\na\na\nb\n")
    assert profiles["c"].stats["mode"] == "b"
    assert profiles["c"].stats["modeCount"] == 2


def test_unique_identifier_column_is_text():
    rows = "\n".join(f"id-{index:03d}" for index in range(50))
    profiles = _profiles("id\n" + rows + "\n")
    assert profiles["id"].inferred_type == TEXT
    assert profiles["id"].unique_value_count == 50


def test_numeric_ratio_threshold():
    # 9 of 10 values numeric is above the 80% cutoff
    values = [str(index) for index in range(9)] + ["n/a"]
    table = parse_csv_text("v\n" + "\n".join(values) + "\n")
    assert infer_column_type(table, "v") == NUMERIC

    values = [str(index) for index in range(8)] + ["n/a", "unknown"]
    table = parse_csv_text("v\n" + "\n".join(values) + "\n")
    assert infer_column_type(table, "v") != NUMERIC


def test_years_stay_numeric():
    table = parse_csv_text("year\n2020\n2021\n2022\n")
    assert infer_column_type(table, "year") == NUMERIC


def test_datetime_column_and_raw_range():
    profiles = _profiles("when\n2024-03-01\n2024-01-15\n2024-02-10\n")
    when = profiles["when"]
    assert when.inferred_type == DATETIME
    assert when.stats == {"min": "2024-01-15", "max": "2024-03-01"}


def test_strict_dates_ignore_month_names_but_loose_mode_accepts_them():
    text = "when\nMarch 1 2024\nApril 2 2024\nMay 3 2024\n"
    assert _profiles(text)["when"].inferred_type != DATETIME
    loose = STANDARD.with_options(date_mode="loose")
    assert _profiles(text, loose)["when"].inferred_type == DATETIME


def test_all_null_column_is_text_with_empty_stats():
    profiles = _profiles("a,b\n1,\n2,\n")
    assert profiles["b"].inferred_type == TEXT
    assert profiles["b"].stats == {}
    assert profiles["b"].null_count == 2
    assert profiles["b"].non_null_count == 0


def test_non_finite_values_are_not_numbers():
    profiles = _profiles("v\nInfinity\nnan\n1\n")
    assert profiles["v"].inferred_type != NUMERIC


def test_sample_values_are_distinct_and_capped():
    table = parse_csv_text("c\n" + "\n".join(["a", "a", "b", "c", "d", "e", "f", "g"]) + "\n")
    profile = profile_column(table, "c")
    assert profile.sample_values == ("a", "b", "c", "d", "e")


def test_profile_to_dict_uses_camel_case():
    profile = _profiles("a\n1\n2\n")["a"]
    data = profile.to_dict()
    assert set(data) == {
        "name", "inferredType", "uniqueValueCount", "nullCount", "nonNullCount", "sampleValues", "stats",
    }


def test_huge_values_keep_finite_stats():
    rows = "\n".join(f"{index}e200,{index}" for index in range(1, 21))
    profiles = _profiles("big,small\n" + rows + "\n")
    big = profiles["big"]
    assert big.inferred_type == NUMERIC
    assert big.stats["mean"] == pytest.approx(10.5e200)
    assert big.stats["std"] == pytest.approx(((400 - 1) / 12) ** 0.5 * 1e200)
    assert big.stats["max"] == 20e200


def test_values_near_float_max_do_not_overflow():
    profiles = _profiles("v\n1e308\n1e308\n1.5e308\n")
    stats = profiles["v"].stats
    assert stats["mean"] == pytest.approx(1.1666666666666667e308)
    assert stats["std"] == pytest.approx(0.2357022603955158e308)
    assert profiles["v"].to_dict()["stats"]["max"] == 1.5e308


@pytest.mark.parametrize(
    "values",
    [
        # 9 of 10 numeric
        [str(index) for index in range(9)] + ["n/a"],
        # 8 of 10 numeric, exactly at the cutoff
        [str(index) for index in range(8)] + ["n/a", "unknown"],
        # 20 distinct labels
        [f"label-{index}" for index in range(20)] * 2,
        # 21 distinct labels
        [f"label-{index}" for index in range(21)],
        ["2024-01-05", "2024-02-11", "2024-03-09", "soon", "2024-04-30", "2024-05-01"],
        ["2024-01-05", "later", "2024-03-09", "soon", "2024-04-30", "never"],
    ],
)
def test_inferred_type_ignores_value_order(values):
    def inferred(ordered):
        return infer_column_type(parse_csv_text("v\n" + "\n".join(ordered) + "\n"), "v")

    expected = inferred(values)
    permutations = [
        list(reversed(values)),
        values[1::2] + values[::2],
        values[len(values) // 2:] + values[: len(values) // 2],
        sorted(values),
    ]
    for ordered in permutations:
        assert inferred(ordered) == expected
