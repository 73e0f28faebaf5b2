from __future__ import annotations

import unittest
from datetime import datetime, timezone

from paginated_query.core.defaults import MAX_PAGE, MAX_PAGE_SIZE
from paginated_query.core.filters import FilterCondition, FilterOperator
from paginated_query.core.identifiers import Allowlist
from paginated_query.core.params import (
    QueryParams,
    QueryParamsBuilder,
    SortDirection,
    clamp_page,
    clamp_page_size,
    normalize_flat_params,
    sanitize_search,
)

ALLOWLIST = Allowlist.of(
    ["name", "description", "email", "status", "price", "category", "created_at", "updated_at"]
)


class SortDirectionTests(unittest.TestCase):
    def test_parse_accepts_short_and_long_forms(self) -> None:
        self.assertIs(SortDirection.parse("asc"), SortDirection.ASCENDING)
        self.assertIs(SortDirection.parse("Ascending"), SortDirection.ASCENDING)
        self.assertIs(SortDirection.parse("DESC"), SortDirection.DESCENDING)
        self.assertIs(SortDirection.parse("sideways"), SortDirection.DESCENDING)
        self.assertIs(SortDirection.parse(None), SortDirection.DESCENDING)
        self.assertEqual(SortDirection.ASCENDING.sql, "ASC")


class RepairTests(unittest.TestCase):
    def test_page_is_at_least_one(self) -> None:
        for raw, expected in (("0", 1), ("-5", 1), ("abc", 1), (None, 1), ("3", 3), (" 7 ", 7), (2, 2)):
            with self.subTest(raw=raw):
                self.assertEqual(clamp_page(raw), expected)

    def test_page_beyond_64_bit_offset_falls_back_to_first_page(self) -> None:
        self.assertEqual(clamp_page(str(MAX_PAGE)), MAX_PAGE)
        self.assertEqual(clamp_page(str(MAX_PAGE + 1)), 1)
        self.assertLessEqual((MAX_PAGE - 1) * MAX_PAGE_SIZE, 2**63 - 1)

        params = QueryParams.from_flat({"page": "99999999999999999999", "page_size": "50"})

        self.assertEqual((params.page, params.offset), (1, 0))

    def test_page_size_is_clamped(self) -> None:
        for raw, expected in (("5", 10), ("500", 50), ("x", 10), ("25", 25), ("10", 10), ("50", 50), (-1, 10)):
            with self.subTest(raw=raw):
                self.assertEqual(clamp_page_size(raw), expected)

    def test_search_is_sanitized(self) -> None:
        self.assertEqual(sanitize_search("  john-doe; DROP TABLE--  "), "john-doe DROP TABLE--")
        self.assertEqual(sanitize_search("o'brien%_"), "obrien")
        self.assertIsNone(sanitize_search("   "))
        self.assertIsNone(sanitize_search("%%%"))
        self.assertIsNone(sanitize_search(None))

    def test_search_is_truncated_before_stripping(self) -> None:
        raw = "a" * 99 + "!" + "b" * 50

        cleaned = sanitize_search(raw)

        self.assertEqual(cleaned, "a" * 99)
        self.assertLessEqual(len(sanitize_search("x" * 500)), 100)


class FromFlatTests(unittest.TestCase):
    def test_defaults(self) -> None:
        params = QueryParams.from_flat({})

        self.assertEqual(params, QueryParams())
        self.assertEqual(params.page, 1)
        self.assertEqual(params.page_size, 10)
        self.assertEqual(params.sort_column, "created_at")
        self.assertIs(params.sort_direction, SortDirection.DESCENDING)
        self.assertEqual(params.search_columns, ("name", "description"))
        self.assertTrue(params.totals_count_enabled)

    def test_reserved_keys_are_parsed(self) -> None:
        params = QueryParams.from_flat(
            {
                "page": "3",
                "page_size": "20",
                "sort_column": "name",
                "sort_direction": "asc",
                "search": "john",
                "search_columns": "name, email,email,password",
                "date_column": "updated_at",
                "date_after": "2024-01-01T00:00:00Z",
                "date_before": "not a date",
            },
            ALLOWLIST,
        )

        self.assertEqual((params.page, params.page_size, params.offset), (3, 20, 40))
        self.assertEqual(params.sort_column, "name")
        self.assertIs(params.sort_direction, SortDirection.ASCENDING)
        self.assertEqual(params.search, "john")
        self.assertEqual(params.search_columns, ("name", "email"))
        self.assertEqual(params.date_column, "updated_at")
        self.assertEqual(params.date_after, datetime(2024, 1, 1, tzinfo=timezone.utc))
        self.assertIsNone(params.date_before)
        self.assertEqual(params.filters, ())

    def test_invalid_sort_column_falls_back_to_default_sort(self) -> None:
        with self.assertLogs("paginated_query.core.params", level="WARNING"):
            params = QueryParams.from_flat(
                {"sort_column": "pg_catalog", "sort_direction": "ascending"}, ALLOWLIST
            )

        self.assertEqual(params.sort_column, "created_at")
        self.assertIs(params.sort_direction, SortDirection.DESCENDING)

    def test_invalid_date_column_falls_back(self) -> None:
        params = QueryParams.from_flat({"date_column": "xmin"}, ALLOWLIST)

        self.assertEqual(params.date_column, "created_at")

    def test_filters_parse_operators_and_keep_order(self) -> None:
        params = QueryParams.from_flat(
            [
                ("status", "active"),
                ("price[gte]", "500"),
                ("price[lte]", "2000"),
                ("category[in]", "computers,electronics"),
                ("name[is_null]", ""),
            ],
            ALLOWLIST,
        )

        self.assertEqual(
            params.filters,
            (
                ("status", FilterCondition.equal("active")),
                ("price", FilterCondition.greater_or_equal("500")),
                ("price", FilterCondition.less_or_equal("2000")),
                ("category", FilterCondition.in_list(["computers", "electronics"])),
                ("name", FilterCondition.is_null()),
            ),
        )
        self.assertEqual(
            params.filter_map()["price"],
            (FilterCondition.greater_or_equal("500"), FilterCondition.less_or_equal("2000")),
        )

    def test_unknown_filter_columns_and_operators_are_dropped(self) -> None:
        with self.assertLogs("paginated_query.core.params", level="DEBUG") as logs:
            params = QueryParams.from_flat(
                {"password": "x", "status[between]": "1,2", "pg_class": "1", "status": "ok"},
                ALLOWLIST,
            )

        self.assertEqual(params.filters, (("status", FilterCondition.equal("ok")),))
        self.assertTrue(any("password" in line for line in logs.output))

    def test_same_column_and_operator_replaces_in_place(self) -> None:
        params = QueryParams.from_flat(
            [("status", "a"), ("price[gt]", "1"), ("status[eq]", "b")], ALLOWLIST
        )

        self.assertEqual(
            params.filters,
            (
                ("status", FilterCondition.equal("b")),
                ("price", FilterCondition.greater_than("1")),
            ),
        )

    def test_query_string_input(self) -> None:
        params = QueryParams.from_flat(
            "?page=2&search=tv+stand&category%5Bnin%5D=toys,books&totals_count=false",
            ALLOWLIST,
        )

        self.assertEqual(params.page, 2)
        self.assertEqual(params.search, "tv stand")
        self.assertEqual(params.filters, (("category", FilterCondition.not_in_list(["toys", "books"])),))
        self.assertFalse(params.totals_count_enabled)

    def test_protection_disabled_keeps_unknown_columns(self) -> None:
        params = QueryParams.from_flat(
            {"sort_column": "score", "score[gt]": "3"}, ALLOWLIST, protection_enabled=False
        )

        self.assertEqual(params.sort_column, "score")
        self.assertEqual(params.filters, (("score", FilterCondition.greater_than("3")),))
        self.assertFalse(params.protection_enabled)

    def test_never_raises_on_garbage(self) -> None:
        params = QueryParams.from_flat(
            {"page": "1e9", "page_size": "", "sort_direction": "", "date_after": "31/12/2024", "[]": "x"},
            ALLOWLIST,
        )

        self.assertEqual((params.page, params.page_size), (1, 10))
        self.assertIsNone(params.date_after)
        self.assertEqual(params.filters, ())

    def test_normalize_flat_params_last_value_wins(self) -> None:
        values = normalize_flat_params([("a", "1"), ("b", 2), ("a", "3"), ("c", None)])

        self.assertEqual(list(values.items()), [("a", "3"), ("b", "2")])


class BuilderTests(unittest.TestCase):
    def test_setters_match_flat_parsing(self) -> None:
        built = (
            QueryParamsBuilder(ALLOWLIST)
            .with_pagination(2, 20)
            .with_sort("name", "asc")
            .with_search("john", ["name", "email"])
            .with_date_range(after="2024-01-01T00:00:00Z")
            .with_filter("status", "active")
            .with_filter_operator("price", "gte", "500")
            .with_filter_in("category", ["computers", "electronics"])
            .build()
        )
        parsed = QueryParams.from_flat(
            {
                "page": "2",
                "page_size": "20",
                "sort_column": "name",
                "sort_direction": "asc",
                "search": "john",
                "search_columns": "name,email",
                "date_after": "2024-01-01T00:00:00Z",
                "status": "active",
                "price[gte]": "500",
                "category[in]": "computers,electronics",
            },
            ALLOWLIST,
        )

        self.assertEqual(built, parsed)

    def test_last_write_wins(self) -> None:
        params = (
            QueryParamsBuilder(ALLOWLIST)
            .with_sort("name", SortDirection.ASCENDING)
            .with_sort("email")
            .with_pagination(1, 5)
            .with_pagination(4, 100)
            .with_filter_like("name", "%a%")
            .with_filter_like("name", "%b%")
            .build()
        )

        self.assertEqual(params.sort_column, "email")
        self.assertIs(params.sort_direction, SortDirection.DESCENDING)
        self.assertEqual((params.page, params.page_size), (4, 50))
        self.assertEqual(params.filters, (("name", FilterCondition.like("%b%")),))

    def test_filter_setters(self) -> None:
        params = (
            QueryParamsBuilder(ALLOWLIST)
            .with_filter_not_in("status", ["archived"])
            .with_filter_null("updated_at")
            .with_filter_not_null("email")
            .with_filter_not_like("name", "test%")
            .with_filter_operator("price", FilterOperator.LESS_THAN, 10)
            .with_filter_operator("price", "unknown", 10)
            .with_filter_conditions({"category": FilterCondition.not_equal("toys")})
            .build()
        )

        self.assertEqual(
            [(column, condition.operator) for column, condition in params.filters],
            [
                ("status", FilterOperator.NOT_IN),
                ("updated_at", FilterOperator.IS_NULL),
                ("email", FilterOperator.IS_NOT_NULL),
                ("name", FilterOperator.NOT_LIKE),
                ("price", FilterOperator.LESS_THAN),
                ("category", FilterOperator.NOT_EQUAL),
            ],
        )

    def test_validation_runs_at_build_regardless_of_order(self) -> None:
        protected = QueryParamsBuilder(ALLOWLIST).with_filter("score", "1").build()
        unprotected = (
            QueryParamsBuilder(ALLOWLIST).with_filter("score", "1").disable_protection().build()
        )

        self.assertEqual(protected.filters, ())
        self.assertEqual(unprotected.filters, (("score", FilterCondition.equal("1")),))

    def test_filter_on_none_must_use_null_check(self) -> None:
        with self.assertRaises(ValueError):
            QueryParamsBuilder(ALLOWLIST).with_filter("status", None)

        params = QueryParamsBuilder(ALLOWLIST).with_filter_null("status").build()

        self.assertEqual(params.filters, (("status", FilterCondition.is_null()),))

    def test_totals_toggle(self) -> None:
        self.assertFalse(QueryParamsBuilder().disable_totals_count().build().totals_count_enabled)
        self.assertTrue(
            QueryParamsBuilder().disable_totals_count().with_totals_count().build().totals_count_enabled
        )

    def test_date_range_with_column(self) -> None:
        after = datetime(2024, 5, 1, 8, 30)

        params = QueryParamsBuilder(ALLOWLIST).with_date_range(after, None, column="updated_at").build()

        self.assertEqual(params.date_column, "updated_at")
        self.assertEqual(params.date_after, after.replace(tzinfo=timezone.utc))
        self.assertIsNone(params.date_before)


if __name__ == "__main__":
    unittest.main()
