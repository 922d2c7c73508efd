# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""scriptrunner - run parameterised operational scripts from a git repository."""

__version__ = "0.3.0"
