import datetime
import decimal
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional

import pytest

from databricks.statement.decoder import ResultDecoder, column
from databricks.statement.exc import DecodeError
from databricks.statement.models.base import ResultColumn


@dataclass
class User:
    user_id: int
    name: Optional[str] = None
    extra: Optional[str] = None


@dataclass
class Account:
    account_id: int = column("acct", default=0)
    tags: List[str] = field(default_factory=list)


class Order(NamedTuple):
    order_id: int
    total: decimal.Decimal


class Plain:
    user_id: int = 0
    name: Optional[str] = None


class Renamed:
    __column_names__ = {"login": "USER_NAME"}

    def __init__(self, login=None):
        self.login = login


class TestRowToMapping:
    @pytest.fixture
    def decoder(self):
        return ResultDecoder()

    def test_pairs_values_positionally_and_converts_types(self, decoder):
        columns = [
            ResultColumn("id", "INT", 0),
            ResultColumn("amount", "DECIMAL(10,2)", 1),
            ResultColumn("created", "TIMESTAMP", 2),
            ResultColumn("active", "BOOLEAN", 3),
            ResultColumn("label", "STRING", 4),
        ]

        mapping = decoder.row_to_mapping(
            ["7", "12.5", "2024-01-02T03:04:05Z", "true", "x"], columns
        )

        assert list(mapping) == ["id", "amount", "created", "active", "label"]
        assert mapping["id"] == 7
        assert mapping["amount"] == decimal.Decimal("12.50")
        assert mapping["created"] == datetime.datetime(
            2024, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc
        )
        assert mapping["active"] is True
        assert mapping["label"] == "x"

    def test_plain_column_names_are_not_converted(self, decoder):
        mapping = decoder.row_to_mapping(["1", None], ["a", "b"])

        assert mapping == {"a": "1", "b": None}

    def test_conversion_can_be_disabled(self):
        decoder = ResultDecoder(convert_types=False)

        mapping = decoder.row_to_mapping(["1"], [ResultColumn("id", "INT")])

        assert mapping == {"id": "1"}

    def test_length_mismatch_raises(self, decoder):
        with pytest.raises(DecodeError) as excinfo:
            decoder.row_to_mapping(["1"], ["a", "b"])

        assert excinfo.value.context == {"row-length": 1, "column-count": 2}

    @pytest.mark.parametrize("row", ["ab", {"a": 1}, None, 5])
    def test_non_sequence_row_raises(self, decoder, row):
        with pytest.raises(DecodeError):
            decoder.row_to_mapping(row, ["a", "b"])


class TestMappingToRecord:
    @pytest.fixture
    def decoder(self):
        return ResultDecoder()

    def test_matches_fields_regardless_of_case_and_convention(self, decoder):
        user = decoder.mapping_to_record({"USER_ID": 1, "NAME": "alice"}, User)

        assert user == User(user_id=1, name="alice", extra=None)

    def test_camel_case_columns_fill_snake_case_fields(self, decoder):
        user = decoder.mapping_to_record({"UserId": 3, "Name": "carol"}, User)

        assert user.user_id == 3
        assert user.name == "carol"

    def test_exact_match_wins_over_normalized_match(self, decoder):
        user = decoder.mapping_to_record({"USERID": 1, "user_id": 2}, User)

        assert user.user_id == 2

    def test_extra_columns_are_ignored(self, decoder):
        user = decoder.mapping_to_record(
            {"user_id": 1, "name": "a", "unused": True}, User
        )

        assert not hasattr(user, "unused")

    def test_unmatched_required_field_is_none(self, decoder):
        user = decoder.mapping_to_record({"name": "alice"}, User)

        assert user.user_id is None

    def test_column_metadata_override(self, decoder):
        account = decoder.mapping_to_record({"ACCT": "42"}, Account)

        assert account.account_id == 42
        assert account.tags == []

    def test_default_factory_gives_fresh_values(self, decoder):
        first = decoder.mapping_to_record({}, Account)
        second = decoder.mapping_to_record({}, Account)

        assert first.account_id == 0
        assert first.tags is not second.tags

    def test_column_names_class_attribute(self, decoder):
        record = decoder.mapping_to_record({"user_name": "bob"}, Renamed)

        assert record.login == "bob"

    def test_named_tuple(self, decoder):
        order = decoder.mapping_to_record({"ORDER_ID": "9", "TOTAL": "1.50"}, Order)

        assert order == Order(order_id=9, total=decimal.Decimal("1.50"))

    def test_plain_class_attributes_are_set_after_construction(self, decoder):
        record = decoder.mapping_to_record({"USER_ID": "5"}, Plain)

        assert record.user_id == 5
        assert record.name is None

    def test_value_that_cannot_be_coerced_is_kept(self, decoder):
        user = decoder.mapping_to_record({"user_id": "not-a-number"}, User)

        assert user.user_id == "not-a-number"

    @pytest.mark.parametrize(
        "value", [1.9, decimal.Decimal("1.9"), decimal.Decimal("-0.5")]
    )
    def test_fractional_numbers_are_not_truncated_into_int_fields(self, decoder, value):
        user = decoder.mapping_to_record({"user_id": value}, User)

        assert user.user_id == value

    @pytest.mark.parametrize("value", [2.0, decimal.Decimal("2"), decimal.Decimal("2.00")])
    def test_integral_numbers_become_int(self, decoder, value):
        user = decoder.mapping_to_record({"user_id": value}, User)

        assert user.user_id == 2
        assert type(user.user_id) is int

    def test_dict_record_type_returns_mapping_copy(self, decoder):
        mapping = {"a": 1}

        result = decoder.mapping_to_record(mapping, dict)

        assert result == {"a": 1}
        assert result is not mapping

    def test_from_row_classmethod_is_used(self, decoder):
        class Point:
            def __init__(self, x, y):
                self.x, self.y = x, y

            @classmethod
            def from_row(cls, row):
                return cls(row["X"], row["Y"])

        point = decoder.mapping_to_record({"X": 1, "Y": 2}, Point)

        assert (point.x, point.y) == (1, 2)

    def test_from_row_failure_raises_decode_error(self, decoder):
        class Broken:
            @classmethod
            def from_row(cls, row):
                raise KeyError("missing")

        with pytest.raises(DecodeError):
            decoder.mapping_to_record({}, Broken)

    def test_constructor_failure_raises_decode_error(self, decoder):
        @dataclass
        class Positive:
            value: int

            def __post_init__(self):
                if self.value is None or self.value <= 0:
                    raise ValueError("value must be positive")

        with pytest.raises(DecodeError):
            decoder.mapping_to_record({"value": "-1"}, Positive)

    def test_field_table_is_cached_per_type(self, decoder):
        assert decoder.field_table(User) is decoder.field_table(User)


class TestDecodeRow:
    def test_decode_row_end_to_end(self):
        decoder = ResultDecoder()
        columns = [ResultColumn("USER_ID", "INT", 0), ResultColumn("NAME", "STRING", 1)]

        user = decoder.decode_row(["1", "alice"], columns, User)

        assert user == User(user_id=1, name="alice")
