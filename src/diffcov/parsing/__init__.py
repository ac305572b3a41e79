"""Structural parsing of source files into method-level units."""

from diffcov.parsing.java import (
    JavaParser,
    fingerprint,
    normalize_type,
    package_from_path,
    qualified_name_from_path,
)
from diffcov.parsing.models import ParsedMethod, ParseFailure, StructuralUnit, qualify

__all__ = [
    "JavaParser",
    "ParsedMethod",
    "ParseFailure",
    "StructuralUnit",
    "fingerprint",
    "normalize_type",
    "package_from_path",
    "qualified_name_from_path",
    "qualify",
]
