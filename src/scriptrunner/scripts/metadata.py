"""Script metadata parsing.

Extracts the metadata block embedded in a script file. The block is a
tolerant, line-oriented micro-format:

    SCRIPT-METADATA:
      Id: purge-sessions
      Name: Purge sessions
      Category: Maintenance
      Description: Removes expired sessions.
      Parameters:
        - Name: OlderThanDays
          Type: Int
          Required: true
          Default: "30"
    END-SCRIPT-METADATA

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from scriptrunner.errors import ParseError
from scriptrunner.schemas import ParameterDefinition, ParameterType, ScriptMetadata


# First block only; DOTALL so the block may span lines
METADATA_BLOCK = re.compile(r"SCRIPT-METADATA:(.*?)END-SCRIPT-METADATA", re.DOTALL)

PARAMETER_MARKER = "- name:"
CONNECTION_KEY = "sqlconnectionstring:"
TOP_LEVEL_KEYS = ("id", "name", "category", "description")


@dataclass
class _ParameterBuilder:
    """Mutable accumulator for the parameter currently being read."""

    name: str
    type: ParameterType = ParameterType.STRING
    required: bool = False
    display_name: Optional[str] = None
    default: Optional[str] = None
    help_text: Optional[str] = None
    enum_values: List[str] = field(default_factory=list)

    def build(self) -> ParameterDefinition:
        return ParameterDefinition(
            name=self.name,
            type=self.type,
            required=self.required,
            display_name=self.display_name,
            default=self.default,
            help_text=self.help_text,
            enum_values=tuple(self.enum_values),
        )


def _value(line: str) -> str:
    """Return the text after the first colon, trimmed."""
    return line.split(":", 1)[1].strip()


def _unquote(text: str) -> str:
    return text.strip('"')


def _starts_with(line: str, key: str) -> bool:
    return line.lower().startswith(key)


def parse_metadata(raw_text: str) -> ScriptMetadata:
    """Parse the metadata block of a script.

    Args:
        raw_text: Full script text.

    Returns:
        ScriptMetadata with parameters in declaration order. ``source_path``
        is left unset; the caller knows where the text came from.

    Raises:
        ParseError: If the block is missing or Id, Name or Category is absent.
    """
    if raw_text is None:
        raise ParseError("script content is empty")

    match = METADATA_BLOCK.search(raw_text)
    if not match:
        raise ParseError("Metadata block missing")

    top: dict = {}
    connection_string: Optional[str] = None
    parameters: List[ParameterDefinition] = []
    current: Optional[_ParameterBuilder] = None

    for raw_line in match.group(1).split("\n"):
        line = raw_line.rstrip("\r").strip()
        if not line:
            continue

        if _starts_with(line, PARAMETER_MARKER):
            if current is not None:
                parameters.append(current.build())
            current = _ParameterBuilder(name=_value(line))
            continue

        # Connection string is top level even inside a parameter
        if _starts_with(line, CONNECTION_KEY):
            connection_string = _unquote(_value(line))
            continue

        if current is None:
            for key in TOP_LEVEL_KEYS:
                if _starts_with(line, key + ":"):
                    top[key] = _value(line)
                    break
            continue

        if _starts_with(line, "type:"):
            current.type = ParameterType.parse(_value(line))
        elif _starts_with(line, "required:"):
            current.required = _value(line).lower() == "true"
        elif _starts_with(line, "displayname:"):
            current.display_name = _value(line)
        elif _starts_with(line, "default:"):
            current.default = _unquote(_value(line))
        elif _starts_with(line, "helptext:"):
            current.help_text = _unquote(_value(line))
        elif _starts_with(line, "enumvalues:") or _starts_with(line, "values:"):
            current.enum_values = [v.strip() for v in _value(line).split(",") if v.strip()]
        # Anything else is ignored so newer keys don't break older parsers

    if current is not None:
        parameters.append(current.build())

    missing = [key for key in ("id", "name", "category") if key not in top]
    if missing:
        raise ParseError(
            "Mandatory metadata fields (Id, Name, Category) missing: "
            + ", ".join(k.capitalize() for k in missing)
        )

    return ScriptMetadata(
        id=top["id"],
        name=top["name"],
        category=top["category"],
        description=top.get("description"),
        parameters=tuple(parameters),
        sql_connection_string=connection_string,
    )
