"""
Type conversion utilities for inline statement results.

JSON_ARRAY results carry every cell as a string (or null). This module converts
those strings to Python values based on the column ``type_text``.
"""

import datetime
import decimal
import json
import logging
import re
from dateutil import parser
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

_TYPE_PARAMS_RE = re.compile(r"^\s*([A-Za-z_]+)\s*(?:\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\))?")


def _convert_decimal(
    value: str, precision: Optional[int] = None, scale: Optional[int] = None
) -> decimal.Decimal:
    """
    Convert a string value to a decimal with optional precision and scale.

    Args:
        value: The string value to convert
        precision: Optional precision (total number of significant digits) for the decimal
        scale: Optional scale (number of decimal places) for the decimal

    Returns:
        A decimal.Decimal object with appropriate precision and scale
    """

    result = decimal.Decimal(value)

    quantizer = None
    if scale is not None:
        quantizer = decimal.Decimal(f'0.{"0" * scale}') if scale > 0 else decimal.Decimal(1)

    context = None
    if precision is not None:
        context = decimal.Context(prec=precision)

    if quantizer is not None:
        result = result.quantize(quantizer, context=context)

    return result


def _convert_boolean(value: str) -> bool:
    return value.strip().lower() in ("true", "t", "1", "yes", "y")


class SqlType:
    """
    Normalized SQL type names, lowercase and without parameters.
    """

    # Numeric types
    TINYINT = "tinyint"
    SMALLINT = "smallint"
    INT = "int"
    BIGINT = "bigint"
    FLOAT = "float"
    DOUBLE = "double"
    DECIMAL = "decimal"

    # Boolean type
    BOOLEAN = "boolean"

    # Date/Time types
    DATE = "date"
    TIMESTAMP = "timestamp"
    INTERVAL = "interval"

    # String types
    CHAR = "char"
    VARCHAR = "varchar"
    STRING = "string"

    # Binary type
    BINARY = "binary"

    # Complex types
    ARRAY = "array"
    MAP = "map"
    STRUCT = "struct"

    # Other types
    NULL = "null"
    VOID = "void"


# Aliases the server uses in type_text / type_name
_TYPE_ALIASES: Dict[str, str] = {
    "byte": SqlType.TINYINT,
    "short": SqlType.SMALLINT,
    "integer": SqlType.INT,
    "long": SqlType.BIGINT,
    "real": SqlType.FLOAT,
    "dec": SqlType.DECIMAL,
    "numeric": SqlType.DECIMAL,
    "bool": SqlType.BOOLEAN,
    "timestamp_ntz": SqlType.TIMESTAMP,
    "timestamp_ltz": SqlType.TIMESTAMP,
}


def parse_type_text(type_text: Optional[str]) -> Tuple[str, Optional[int], Optional[int]]:
    """
    Split a type text such as ``DECIMAL(10,2)`` or ``ARRAY<INT>`` into its
    normalized base name, precision and scale.
    """

    if not type_text:
        return "", None, None

    match = _TYPE_PARAMS_RE.match(type_text)
    if not match:
        return type_text.strip().lower(), None, None

    base = match.group(1).lower()
    base = _TYPE_ALIASES.get(base, base)
    precision = int(match.group(2)) if match.group(2) else None
    scale = int(match.group(3)) if match.group(3) else None
    return base, precision, scale


class SqlTypeConverter:
    """
    Utility class for converting SQL types to Python types.
    """

    TYPE_MAPPING: Dict[str, Callable] = {
        # Numeric types
        SqlType.TINYINT: lambda v: int(v),
        SqlType.SMALLINT: lambda v: int(v),
        SqlType.INT: lambda v: int(v),
        SqlType.BIGINT: lambda v: int(v),
        SqlType.FLOAT: lambda v: float(v),
        SqlType.DOUBLE: lambda v: float(v),
        SqlType.DECIMAL: _convert_decimal,
        # Boolean type
        SqlType.BOOLEAN: _convert_boolean,
        # Date/Time types
        SqlType.DATE: lambda v: datetime.date.fromisoformat(v),
        SqlType.TIMESTAMP: lambda v: parser.parse(v),
        SqlType.INTERVAL: lambda v: v,  # Keep as string for now
        # String types - no conversion needed
        SqlType.CHAR: lambda v: v,
        SqlType.VARCHAR: lambda v: v,
        SqlType.STRING: lambda v: v,
        # Binary type
        SqlType.BINARY: lambda v: bytes.fromhex(v),
        # Complex types arrive JSON encoded
        SqlType.ARRAY: lambda v: json.loads(v),
        SqlType.MAP: lambda v: json.loads(v),
        SqlType.STRUCT: lambda v: json.loads(v),
        # Other types
        SqlType.NULL: lambda v: None,
        SqlType.VOID: lambda v: None,
    }

    @staticmethod
    def convert_value(
        value: Any,
        type_text: Optional[str],
        column_name: Optional[str] = None,
        **kwargs,
    ) -> Any:
        """
        Convert a cell value to the appropriate Python type based on its SQL type.

        Non-string values are returned unchanged, as are values of unknown types
        and values that fail to convert (a warning is logged).

        Args:
            value: The cell value to convert
            type_text: The SQL type text of the column (e.g., 'INT', 'DECIMAL(10,2)')
            column_name: The name of the column being converted
            **kwargs: precision / scale overrides for decimals

        Returns:
            The converted value in the appropriate Python type
        """

        if value is None or not isinstance(value, str):
            return value

        sql_type, precision, scale = parse_type_text(type_text)
        if sql_type not in SqlTypeConverter.TYPE_MAPPING:
            return value

        converter_func = SqlTypeConverter.TYPE_MAPPING[sql_type]
        try:
            if sql_type == SqlType.DECIMAL:
                precision = kwargs.get("precision") or precision
                scale = kwargs.get("scale") if kwargs.get("scale") is not None else scale
                return converter_func(value, precision, scale)
            else:
                return converter_func(value)
        except Exception as e:
            warning_message = f"Error converting value '{value}' to {sql_type}"
            if column_name:
                warning_message += f" in column {column_name}"
            warning_message += f": {e}"
            logger.warning(warning_message)
            return value
