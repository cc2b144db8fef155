import datetime
import decimal

import pytest

from databricks.statement.conversion import SqlTypeConverter, parse_type_text


class TestParseTypeText:
    @pytest.mark.parametrize(
        "type_text, expected",
        [
            ("INT", ("int", None, None)),
            ("DECIMAL(10,2)", ("decimal", 10, 2)),
            ("decimal(5)", ("decimal", 5, None)),
            ("ARRAY<INT>", ("array", None, None)),
            ("LONG", ("bigint", None, None)),
            ("TIMESTAMP_NTZ", ("timestamp", None, None)),
            ("", ("", None, None)),
            (None, ("", None, None)),
        ],
    )
    def test_parse(self, type_text, expected):
        assert parse_type_text(type_text) == expected


class TestSqlTypeConverter:
    def test_numeric_types(self):
        assert SqlTypeConverter.convert_value("12", "TINYINT") == 12
        assert SqlTypeConverter.convert_value("12", "BIGINT") == 12
        assert SqlTypeConverter.convert_value("1.5", "DOUBLE") == 1.5
        assert SqlTypeConverter.convert_value("1.5", "FLOAT") == 1.5

    def test_decimal_uses_scale_from_type_text(self):
        result = SqlTypeConverter.convert_value("3.1", "DECIMAL(10,2)")

        assert result == decimal.Decimal("3.10")
        assert str(result) == "3.10"

    def test_decimal_scale_keyword_overrides_type_text(self):
        result = SqlTypeConverter.convert_value("3.14159", "DECIMAL", scale=3)

        assert str(result) == "3.142"

    def test_boolean(self):
        assert SqlTypeConverter.convert_value("true", "BOOLEAN") is True
        assert SqlTypeConverter.convert_value("false", "BOOLEAN") is False

    def test_date_and_timestamp(self):
        assert SqlTypeConverter.convert_value("2024-03-01", "DATE") == datetime.date(
            2024, 3, 1
        )
        assert SqlTypeConverter.convert_value(
            "2024-03-01 10:20:30", "TIMESTAMP"
        ) == datetime.datetime(2024, 3, 1, 10, 20, 30)

    def test_complex_types_are_json_decoded(self):
        assert SqlTypeConverter.convert_value("[1, 2]", "ARRAY<INT>") == [1, 2]
        assert SqlTypeConverter.convert_value('{"a": 1}', "MAP<STRING,INT>") == {"a": 1}

    def test_binary(self):
        assert SqlTypeConverter.convert_value("6869", "BINARY") == b"hi"

    def test_strings_pass_through(self):
        assert SqlTypeConverter.convert_value("abc", "STRING") == "abc"

    def test_unknown_type_returns_value_unchanged(self):
        assert SqlTypeConverter.convert_value("abc", "GEOGRAPHY") == "abc"

    def test_none_and_non_string_values_are_not_converted(self):
        assert SqlTypeConverter.convert_value(None, "INT") is None
        assert SqlTypeConverter.convert_value(5, "STRING") == 5

    def test_conversion_failure_returns_original_and_logs(self, caplog):
        result = SqlTypeConverter.convert_value("abc", "INT", "id")

        assert result == "abc"
        assert "in column id" in caplog.text
