"""Script discovery: metadata parsing, parameter validation, git repository.

Scripts live in a remote git repository and carry their own parameter
contract in a metadata block. Nothing here runs a script.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

from scriptrunner.scripts.git import GitProcess
from scriptrunner.scripts.metadata import parse_metadata
from scriptrunner.scripts.repository import GitScriptRepository, TtlCache
from scriptrunner.scripts.validation import (
    coerce_value,
    describe_parameters,
    validate_parameters,
)

__all__ = [
    "GitProcess",
    "parse_metadata",
    "GitScriptRepository",
    "TtlCache",
    "coerce_value",
    "describe_parameters",
    "validate_parameters",
]
