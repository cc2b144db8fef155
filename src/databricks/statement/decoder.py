"""
Schema-less decoding of inline result rows into caller-supplied record types.

Decoding runs in two stages. A row is first paired positionally with the
column names into an ordered name -> value mapping, converting string cells
according to each column's SQL type. The mapping is then used to populate the
target type field by field through a mapping table that is computed once per
type.
"""

import dataclasses
import datetime
import decimal
import inspect
import logging
import threading
import typing
from collections.abc import Mapping as MappingABC
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from dateutil import parser

from databricks.statement.conversion import SqlTypeConverter
from databricks.statement.exc import DecodeError
from databricks.statement.models.base import ResultColumn

logger = logging.getLogger(__name__)

T = TypeVar("T")

# dataclass field metadata key and class attribute used to declare wire names
COLUMN_METADATA_KEY = "column"
COLUMN_OVERRIDES_ATTR = "__column_names__"

_MISSING = object()


def column(name: str, **kwargs) -> Any:
    """
    Declare a dataclass field that is read from column ``name``.

        @dataclass
        class User:
            user_id: int = column("USER_ID", default=0)
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[COLUMN_METADATA_KEY] = name
    return dataclasses.field(metadata=metadata, **kwargs)


def _normalize_name(name: str) -> str:
    """Case and naming convention insensitive form: USER_ID, user_id, UserId -> userid"""
    return "".join(ch for ch in name.lower() if ch not in "_- ")


@dataclass(frozen=True)
class _FieldSpec:
    attr: str
    candidates: Tuple[str, ...]
    annotation: Any = None
    default: Any = _MISSING
    default_factory: Optional[Callable[[], Any]] = None
    in_init: bool = True

    def default_value(self) -> Any:
        if self.default_factory is not None:
            return self.default_factory()
        if self.default is not _MISSING:
            return self.default
        return None


class _ColumnIndex:
    """Lookup of row values by exact, case-insensitive and normalized name."""

    def __init__(self, mapping: Dict[str, Any]):
        self._exact = mapping
        self._lower: Dict[str, str] = {}
        self._normalized: Dict[str, str] = {}
        for name in mapping:
            self._lower.setdefault(name.lower(), name)
            self._normalized.setdefault(_normalize_name(name), name)

    def find(self, candidates: Sequence[str]) -> Tuple[bool, Any]:
        for candidate in candidates:
            if candidate in self._exact:
                return True, self._exact[candidate]
            key = self._lower.get(candidate.lower())
            if key is not None:
                return True, self._exact[key]
            key = self._normalized.get(_normalize_name(candidate))
            if key is not None:
                return True, self._exact[key]
        return False, None


def _unwrap_optional(annotation: Any) -> Any:
    if typing.get_origin(annotation) is Union:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _coerce(value: Any, annotation: Any) -> Any:
    """
    Best-effort coercion of a decoded value to a scalar field annotation.
    Values that do not convert are returned unchanged.
    """

    if value is None or annotation is None:
        return value

    target = _unwrap_optional(annotation)
    if not isinstance(target, type) or isinstance(value, target):
        # bool is an int subclass, keep int fields numeric
        if target is int and isinstance(value, bool):
            return int(value)
        return value

    try:
        if target is bool:
            if isinstance(value, str):
                return value.strip().lower() in ("true", "t", "1", "yes", "y")
            return bool(value)
        if target is int:
            if isinstance(value, float) and not value.is_integer():
                return value
            if isinstance(value, decimal.Decimal) and value != value.to_integral_value():
                return value
            return int(value)
        if target is float:
            return float(value)
        if target is str:
            return str(value)
        if target is decimal.Decimal:
            return decimal.Decimal(str(value))
        if target is datetime.datetime and isinstance(value, str):
            return parser.parse(value)
        if target is datetime.date:
            if isinstance(value, datetime.datetime):
                return value.date()
            if isinstance(value, str):
                return datetime.date.fromisoformat(value)
    except (ValueError, TypeError, ArithmeticError):
        logger.debug("Could not coerce %r to %s, keeping it as-is", value, target)
    return value


def _type_hints(record_type: type) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(record_type)
    except Exception as e:
        logger.debug("Falling back to raw annotations for %s: %s", record_type, e)
        return dict(getattr(record_type, "__annotations__", {}))


def _build_field_table(record_type: type) -> List[_FieldSpec]:
    hints = _type_hints(record_type)
    overrides: Dict[str, str] = dict(getattr(record_type, COLUMN_OVERRIDES_ATTR, {}) or {})

    def candidates_for(attr: str, override: Optional[str]) -> Tuple[str, ...]:
        override = override or overrides.get(attr)
        return (override, attr) if override else (attr,)

    specs: List[_FieldSpec] = []
    if dataclasses.is_dataclass(record_type):
        for f in dataclasses.fields(record_type):
            if not f.init:
                continue
            specs.append(
                _FieldSpec(
                    attr=f.name,
                    candidates=candidates_for(f.name, f.metadata.get(COLUMN_METADATA_KEY)),
                    annotation=hints.get(f.name),
                    default=f.default if f.default is not dataclasses.MISSING else _MISSING,
                    default_factory=(
                        f.default_factory
                        if f.default_factory is not dataclasses.MISSING
                        else None
                    ),
                )
            )
        return specs

    try:
        signature = inspect.signature(record_type)
    except (TypeError, ValueError):
        signature = None

    seen = set()
    if signature is not None:
        for param in signature.parameters.values():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD, param.POSITIONAL_ONLY):
                continue
            seen.add(param.name)
            specs.append(
                _FieldSpec(
                    attr=param.name,
                    candidates=candidates_for(param.name, None),
                    annotation=hints.get(param.name, None),
                    default=param.default if param.default is not param.empty else _MISSING,
                )
            )

    # annotated attributes the constructor does not take are set afterwards
    for attr, annotation in hints.items():
        if attr in seen or attr.startswith("_") or typing.get_origin(annotation) is typing.ClassVar:
            continue
        specs.append(
            _FieldSpec(
                attr=attr,
                candidates=candidates_for(attr, None),
                annotation=annotation,
                default=getattr(record_type, attr, _MISSING),
                in_init=False,
            )
        )
    return specs


class ResultDecoder:
    """
    Converts untyped result rows into instances of a record type.

    Supported record types:
        - ``dict`` (or any Mapping type): the name -> value mapping itself
        - classes exposing a ``from_row(mapping)`` classmethod; returning None skips the row
        - dataclasses, NamedTuples and plain classes, populated by name

    Field names match columns case-insensitively and regardless of naming
    convention (``USER_ID`` fills ``user_id`` or ``UserId``). An explicit wire
    name can be declared with ``column("name")`` metadata on dataclass fields or
    a ``__column_names__ = {"attr": "name"}`` class attribute. Fields without a
    matching column keep their default (or None); extra columns are ignored.
    """

    def __init__(self, convert_types: bool = True):
        self.convert_types = convert_types
        self._tables: Dict[type, List[_FieldSpec]] = {}
        self._lock = threading.Lock()

    def row_to_mapping(
        self, row: Any, columns: Sequence[Union[ResultColumn, str]]
    ) -> Dict[str, Any]:
        """
        Pair a row with its columns into an ordered name -> value mapping.

        Raises:
            DecodeError: if the row is not a sequence or its length differs
                from the number of columns
        """

        if isinstance(row, (str, bytes)) or not isinstance(row, (list, tuple)):
            raise DecodeError(
                "Row is not a sequence of values",
                {"row-type": type(row).__name__},
            )
        if len(row) != len(columns):
            raise DecodeError(
                "Row has {} values but the result has {} columns".format(
                    len(row), len(columns)
                ),
                {"row-length": len(row), "column-count": len(columns)},
            )

        mapping: Dict[str, Any] = {}
        for col, value in zip(columns, row):
            if isinstance(col, ResultColumn):
                name = col.name
                if self.convert_types:
                    value = SqlTypeConverter.convert_value(
                        value,
                        col.type_text or col.type_name,
                        col.name,
                        precision=col.type_precision,
                        scale=col.type_scale,
                    )
            else:
                name = col
            mapping[name] = value
        return mapping

    def field_table(self, record_type: type) -> List[_FieldSpec]:
        with self._lock:
            table = self._tables.get(record_type)
            if table is None:
                table = _build_field_table(record_type)
                self._tables[record_type] = table
            return table

    def mapping_to_record(self, mapping: Dict[str, Any], record_type: Type[T]) -> Optional[T]:
        """
        Populate ``record_type`` from a name -> value mapping.

        Raises:
            DecodeError: if the record type rejects the values
        """

        if record_type is dict or (
            isinstance(record_type, type) and issubclass(record_type, MappingABC)
        ):
            return dict(mapping)  # type: ignore[return-value]

        from_row = getattr(record_type, "from_row", None)
        if callable(from_row):
            try:
                return from_row(mapping)
            except DecodeError:
                raise
            except Exception as e:
                raise DecodeError(
                    "{}.from_row failed: {}".format(record_type.__name__, e)
                ) from e

        index = _ColumnIndex(mapping)
        init_kwargs: Dict[str, Any] = {}
        late_attrs: Dict[str, Any] = {}
        for spec in self.field_table(record_type):
            found, value = index.find(spec.candidates)
            if found:
                value = _coerce(value, spec.annotation)
            elif spec.in_init:
                value = spec.default_value()
            else:
                continue

            if spec.in_init:
                init_kwargs[spec.attr] = value
            else:
                late_attrs[spec.attr] = value

        try:
            record = record_type(**init_kwargs)
            for attr, value in late_attrs.items():
                setattr(record, attr, value)
        except Exception as e:
            raise DecodeError(
                "Could not build {} from row: {}".format(record_type.__name__, e),
                {"fields": sorted(init_kwargs)},
            ) from e
        return record

    def decode_row(
        self,
        row: Any,
        columns: Sequence[Union[ResultColumn, str]],
        record_type: Type[T],
    ) -> Optional[T]:
        """Decode one row; see row_to_mapping and mapping_to_record."""
        return self.mapping_to_record(self.row_to_mapping(row, columns), record_type)
