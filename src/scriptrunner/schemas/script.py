# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Script metadata schemas.

A script declares its identity and parameter contract inside a metadata
block. The parser turns that block into a ScriptMetadata; the repository
adds the repo-relative source path it was read from.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


SHELL_EXTENSION = ".ps1"
DATABASE_EXTENSION = ".sql"
SCRIPT_EXTENSIONS = (SHELL_EXTENSION, DATABASE_EXTENSION)

# Parameters whose name starts with this prefix are internal and never
# rendered as interpreter arguments.
INTERNAL_PREFIX = "__"


class ParameterType(Enum):
    """Declared type of a script parameter."""

    STRING = "String"
    INT = "Int"
    DECIMAL = "Decimal"
    BOOL = "Bool"
    DATETIME = "DateTime"
    ENUM = "Enum"

    @classmethod
    def parse(cls, text: str) -> "ParameterType":
        """Match a type name case-insensitively, falling back to STRING."""
        wanted = text.strip().lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return cls.STRING


@dataclass(frozen=True)
class ParameterDefinition:
    """One declared parameter of a script."""
    name: str
    type: ParameterType = ParameterType.STRING
    required: bool = False
    display_name: Optional[str] = None
    default: Optional[str] = None
    help_text: Optional[str] = None
    enum_values: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ScriptMetadata:
    """Identity and execution contract of one script."""
    id: str
    name: str
    category: str
    description: Optional[str] = None
    parameters: Tuple[ParameterDefinition, ...] = field(default_factory=tuple)
    sql_connection_string: Optional[str] = None
    source_path: Optional[str] = None  # repo-relative

    @property
    def is_database_script(self) -> bool:
        if self.source_path and self.source_path.lower().endswith(DATABASE_EXTENSION):
            return True
        return bool(self.sql_connection_string and self.sql_connection_string.strip())

    @property
    def extension(self) -> str:
        """File extension used when materializing the script on disk."""
        return DATABASE_EXTENSION if self.is_database_script else SHELL_EXTENSION

    def matches(self, script_id: str) -> bool:
        """Case-insensitive id comparison."""
        return self.id.casefold() == script_id.casefold()


def is_script_path(path: str) -> bool:
    """Return True if the path carries a recognized script extension."""
    return path.lower().endswith(SCRIPT_EXTENSIONS)
