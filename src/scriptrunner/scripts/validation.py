"""Parameter validation and coercion.

Applies declared defaults and coerces caller-supplied values to native
Python types, in place, stopping at the first failing parameter.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, MutableMapping

from scriptrunner.errors import ParameterValidationError
from scriptrunner.schemas import ParameterDefinition, ParameterType, ScriptMetadata

logger = logging.getLogger(__name__)

MAX_STRING_LENGTH = 4000

TRUE_VALUES = ("true", "1", "yes", "on")
FALSE_VALUES = ("false", "0", "no", "off")


def _is_blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        if value != int(value):
            raise ValueError(f"{value!r} is not a whole number")
        return int(value)
    return int(str(value).strip())


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"{value!r} is not a valid decimal") from None


def _to_bool(value: Any) -> bool:
    """Convert value to boolean, accepting the usual textual spellings."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValueError(f"{value!r} is not a valid boolean")


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


_CONVERTERS = {
    ParameterType.INT: _to_int,
    ParameterType.DECIMAL: _to_decimal,
    ParameterType.BOOL: _to_bool,
    ParameterType.DATETIME: _to_datetime,
}


def coerce_value(definition: ParameterDefinition, value: Any) -> Any:
    """Coerce a single value according to its declared type.

    Raises:
        ParameterValidationError: If the value is too long, cannot be
            converted, or is not one of the declared enum values.
    """
    name = definition.name

    if definition.type == ParameterType.STRING:
        text = str(value)
        if len(text) > MAX_STRING_LENGTH:
            raise ParameterValidationError(name, f"Parameter {name} too long")
        return text

    if definition.type == ParameterType.ENUM:
        text = str(value)
        allowed = definition.enum_values
        if allowed and text.casefold() not in (v.casefold() for v in allowed):
            raise ParameterValidationError(name, f"Invalid enum value '{text}' for {name}")
        return text

    try:
        return _CONVERTERS[definition.type](value)
    except (TypeError, ValueError, ArithmeticError) as e:
        raise ParameterValidationError(
            name, f"Parameter {name} value conversion failed: {e}"
        ) from e


def validate_parameters(metadata: ScriptMetadata, parameters: MutableMapping[str, Any]) -> None:
    """Validate and coerce ``parameters`` against the script's contract.

    The mapping is mutated in place: defaults are applied and values are
    replaced with their coerced form. Blank optional values without a
    default are left as supplied. Validation is fail-fast; defaults applied
    to parameters before the failing one are kept.

    Args:
        metadata: Script whose declared parameters are enforced.
        parameters: Caller-supplied parameter bag.

    Raises:
        ParameterValidationError: On the first missing or invalid parameter.
    """
    for definition in metadata.parameters:
        name = definition.name

        if _is_blank(parameters.get(name)) and definition.default and definition.default.strip():
            parameters[name] = definition.default
            logger.debug("[Params] Applied default for %s value=%s", name, definition.default)

        if _is_blank(parameters.get(name)):
            if definition.required:
                message = f"Missing required parameter {name}"
                logger.warning("[Params] %s (script %s)", message, metadata.id)
                raise ParameterValidationError(name, message)
            continue

        try:
            parameters[name] = coerce_value(definition, parameters[name])
        except ParameterValidationError as e:
            logger.warning("[Params] %s (script %s)", e, metadata.id)
            raise
        logger.debug("[Params] Coerced parameter %s -> %r", name, parameters[name])


def describe_parameters(metadata: ScriptMetadata) -> Dict[str, Dict[str, Any]]:
    """Summarize a script's parameter contract for display."""
    return {
        p.name: {
            "type": p.type.value,
            "required": p.required,
            "display_name": p.display_name,
            "default": p.default,
            "help_text": p.help_text,
            "enum_values": list(p.enum_values),
        }
        for p in metadata.parameters
    }
