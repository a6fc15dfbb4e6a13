"""Loaders for declarative catalogs and account exports (JSON)."""

from .json_loader import (
    dump_accounts,
    dump_catalog,
    load_catalog_from_json,
    parse_accounts,
    parse_catalog_dict,
    validate_catalog_dict,
    validate_catalog_file,
)

__all__ = [
    "dump_accounts",
    "dump_catalog",
    "load_catalog_from_json",
    "parse_accounts",
    "parse_catalog_dict",
    "validate_catalog_dict",
    "validate_catalog_file",
]
