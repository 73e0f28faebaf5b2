from __future__ import annotations

import unittest
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from paginated_query.core.coercion import coerce_text, parse_timestamp
from paginated_query.core.errors import InvalidIdentifierError
from paginated_query.core.filters import (
    FilterCondition,
    FilterOperator,
    compile_filter,
    split_filter_key,
)
from paginated_query.core.identifiers import (
    Allowlist,
    SafeIdentifier,
    is_blocked_identifier,
    is_safe_identifier,
    validate_identifier,
)
from paginated_query.ports.db_api.dialects import MySQLDialect, PostgresDialect, SQLiteDialect


@dataclass
class Product:
    id: int
    name: str
    price: Decimal
    category: str
    in_stock: bool = True
    deleted_at: Optional[datetime] = None


class Color(str, Enum):
    RED = "red"


class IdentifierTests(unittest.TestCase):
    def setUp(self) -> None:
        self.allowlist = Allowlist.of(["name", "email", "created_at", "oid"])

    def test_accepts_allowlisted_column(self) -> None:
        identifier = validate_identifier("email", self.allowlist)

        self.assertEqual(identifier, SafeIdentifier("email"))
        self.assertEqual(str(identifier), "email")

    def test_rejects_malformed_names(self) -> None:
        for name in ("", "first name", "name;DROP TABLE users", "users.name", 'na"me', None):
            with self.subTest(name=name):
                with self.assertRaises(InvalidIdentifierError):
                    validate_identifier(name, self.allowlist)

    def test_rejects_system_identifiers_even_when_allowlisted(self) -> None:
        with self.assertRaises(InvalidIdentifierError) as ctx:
            validate_identifier("oid", self.allowlist)
        self.assertIn("reserved", ctx.exception.reason)

        for name in ("pg_catalog", "PG_CLASS", "information_schema", "xmin", "ctid", "rowid", "_rowid_", "sqlite_master"):
            with self.subTest(name=name):
                self.assertTrue(is_blocked_identifier(name))
                self.assertFalse(is_safe_identifier(name))

    def test_rejects_unknown_column_and_names_the_field(self) -> None:
        with self.assertRaises(InvalidIdentifierError) as ctx:
            validate_identifier("password", self.allowlist, field_name="filters")

        self.assertEqual(ctx.exception.identifier, "password")
        self.assertEqual(ctx.exception.field, "filters")
        self.assertEqual(
            str(ctx.exception), "Invalid identifier 'password' in filters: unknown column."
        )
        self.assertIsInstance(ctx.exception, ValueError)

    def test_without_allowlist_only_shape_checks_apply(self) -> None:
        self.assertTrue(is_safe_identifier("anything_goes"))
        self.assertFalse(is_safe_identifier("pg_stat"))

    def test_protection_disabled_passes_name_verbatim(self) -> None:
        identifier = validate_identifier("lower(name)", self.allowlist, protection_enabled=False)

        self.assertEqual(identifier.name, "lower(name)")
        self.assertFalse(identifier.checked)

    def test_allowlist_from_model_resolves_types(self) -> None:
        allowlist = Allowlist.from_model(Product, extra_columns={"created_at": datetime})

        self.assertIn("price", allowlist)
        self.assertIn("created_at", allowlist)
        self.assertNotIn("secret", allowlist)
        self.assertEqual(len(allowlist), 7)
        self.assertIs(allowlist.type_of("price"), Decimal)
        self.assertIs(allowlist.type_of("deleted_at"), datetime)
        self.assertIs(allowlist.type_of("created_at"), datetime)
        self.assertIsNone(allowlist.type_of("missing"))

    def test_allowlist_from_model_requires_dataclass_type(self) -> None:
        with self.assertRaises(TypeError):
            Allowlist.from_model(object)


class FilterOperatorTests(unittest.TestCase):
    def test_parse_tokens_and_aliases(self) -> None:
        self.assertIs(FilterOperator.parse("gte"), FilterOperator.GREATER_OR_EQUAL)
        self.assertIs(FilterOperator.parse("NEQ"), FilterOperator.NOT_EQUAL)
        self.assertIs(FilterOperator.parse("not_in"), FilterOperator.NOT_IN)
        self.assertIs(FilterOperator.parse("null"), FilterOperator.IS_NULL)
        self.assertIs(FilterOperator.parse(" nlike "), FilterOperator.NOT_LIKE)
        self.assertIsNone(FilterOperator.parse("between"))

    def test_sql_keywords(self) -> None:
        self.assertEqual(FilterOperator.NOT_EQUAL.sql, "!=")
        self.assertEqual(FilterOperator.NOT_IN.sql, "NOT IN")
        self.assertEqual(FilterOperator.IS_NOT_NULL.sql, "IS NOT NULL")


class FilterConditionTests(unittest.TestCase):
    def test_factories_store_text_values(self) -> None:
        self.assertEqual(FilterCondition.equal(5).values, ("5",))
        self.assertEqual(FilterCondition.in_list([1, "b"]).values, ("1", "b"))
        self.assertEqual(FilterCondition.is_null().values, ())
        self.assertEqual(FilterCondition.like("%x%").value, "%x%")

    def test_scalar_operator_requires_one_value(self) -> None:
        with self.assertRaises(ValueError):
            FilterCondition(FilterOperator.EQUAL, ())
        with self.assertRaises(ValueError):
            FilterCondition(FilterOperator.LESS_THAN, ("1", "2"))

    def test_none_is_rejected_for_value_operators(self) -> None:
        for build in (
            lambda: FilterCondition.equal(None),
            lambda: FilterCondition.of(FilterOperator.GREATER_THAN),
            lambda: FilterCondition.in_list(["a", None]),
        ):
            with self.assertRaisesRegex(ValueError, "is_null"):
                build()

    def test_null_operators_discard_values(self) -> None:
        self.assertEqual(FilterCondition(FilterOperator.IS_NULL, ("x",)).values, ())

    def test_parse_wire_format(self) -> None:
        self.assertEqual(
            FilterCondition.parse("in", " computers, ,electronics "),
            FilterCondition.in_list(["computers", "electronics"]),
        )
        self.assertEqual(FilterCondition.parse("is_null", ""), FilterCondition.is_null())
        self.assertIsNone(FilterCondition.parse("contains", "x"))

    def test_split_filter_key(self) -> None:
        self.assertEqual(split_filter_key("price[gte]"), ("price", "gte"))
        self.assertEqual(split_filter_key("status"), ("status", None))
        self.assertEqual(split_filter_key("a[b][c]"), ("a[b][c]", None))


class CompileFilterTests(unittest.TestCase):
    def test_comparison_on_sqlite_binds_text(self) -> None:
        compiled = compile_filter('"price"', FilterCondition.greater_or_equal(500), SQLiteDialect(), 1)

        self.assertEqual(compiled.sql, '"price" >= ?')
        self.assertEqual(compiled.arguments, ("500",))
        self.assertEqual(compiled.next_index, 2)

    def test_comparison_on_postgres_coerces_known_type(self) -> None:
        compiled = compile_filter(
            '"price"',
            FilterCondition.less_or_equal("2000"),
            PostgresDialect(),
            3,
            python_type=int,
        )

        self.assertEqual(compiled.sql, '"price" <= $3')
        self.assertEqual(compiled.arguments, (2000,))
        self.assertEqual(compiled.next_index, 4)

    def test_in_list_uses_one_placeholder_per_value(self) -> None:
        condition = FilterCondition.in_list(["computers", "electronics"])

        pg = compile_filter('"category"', condition, PostgresDialect(), 2)
        mysql = compile_filter("`category`", condition, MySQLDialect(), 2)

        self.assertEqual(pg.sql, '"category" IN ($2, $3)')
        self.assertEqual(mysql.sql, "`category` IN (%s, %s)")
        self.assertEqual(pg.arguments, ("computers", "electronics"))
        self.assertEqual(pg.next_index, 4)

    def test_empty_lists_compile_to_constant_predicates(self) -> None:
        empty_in = compile_filter('"c"', FilterCondition.in_list([]), SQLiteDialect(), 1)
        empty_not_in = compile_filter('"c"', FilterCondition.not_in_list([]), SQLiteDialect(), 1)

        self.assertEqual((empty_in.sql, empty_in.arguments), ("1=0", ()))
        self.assertEqual((empty_not_in.sql, empty_not_in.arguments), ("1=1", ()))
        self.assertEqual(empty_in.next_index, 1)

    def test_null_checks_bind_nothing(self) -> None:
        compiled = compile_filter('"deleted_at"', FilterCondition.is_not_null(), PostgresDialect(), 1)

        self.assertEqual(compiled.sql, '"deleted_at" IS NOT NULL')
        self.assertEqual(compiled.arguments, ())

    def test_like_pattern_is_bound_unmodified(self) -> None:
        compiled = compile_filter(
            '"name"', FilterCondition.not_like("%pro%"), PostgresDialect(), 1, python_type=int
        )

        self.assertEqual(compiled.sql, '"name" NOT LIKE $1')
        self.assertEqual(compiled.arguments, ("%pro%",))


class CoercionTests(unittest.TestCase):
    def test_known_types_convert(self) -> None:
        self.assertEqual(coerce_text("42", int), 42)
        self.assertEqual(coerce_text("1.5", float), 1.5)
        self.assertEqual(coerce_text("19.99", Decimal), Decimal("19.99"))
        self.assertIs(coerce_text("TRUE", bool), True)
        self.assertIs(coerce_text("off", bool), False)
        self.assertEqual(coerce_text("2024-03-01", date), date(2024, 3, 1))
        self.assertEqual(
            coerce_text("12345678-1234-5678-1234-567812345678", UUID),
            UUID("12345678-1234-5678-1234-567812345678"),
        )

    def test_unparsable_or_unknown_types_stay_text(self) -> None:
        self.assertEqual(coerce_text("abc", int), "abc")
        self.assertEqual(coerce_text("maybe", bool), "maybe")
        self.assertEqual(coerce_text("red", Color), "red")
        self.assertEqual(coerce_text("x", None), "x")
        self.assertEqual(coerce_text("[]", list), "[]")

    def test_parse_timestamp_normalizes_to_utc(self) -> None:
        utc = timezone.utc
        self.assertEqual(
            parse_timestamp("2024-01-01T10:00:00Z"), datetime(2024, 1, 1, 10, tzinfo=utc)
        )
        self.assertEqual(
            parse_timestamp("2024-01-01T12:00:00+02:00"), datetime(2024, 1, 1, 10, tzinfo=utc)
        )
        self.assertEqual(parse_timestamp("2024-01-01"), datetime(2024, 1, 1, tzinfo=utc))
        self.assertEqual(parse_timestamp(date(2024, 1, 1)), datetime(2024, 1, 1, tzinfo=utc))
        self.assertIsNone(parse_timestamp("yesterday"))
        self.assertIsNone(parse_timestamp(""))
        self.assertIsNone(parse_timestamp(17))


if __name__ == "__main__":
    unittest.main()
