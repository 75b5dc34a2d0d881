"""
CSV parsers module.
"""

from parsers.title_csv_parser import (
    parse_title_csv,
    read_csv_rows,
    auto_map_columns,
    validate_csv_row,
    validate_csv_data,
    HEADER_AUTO_MAP,
)

__all__ = [
    "parse_title_csv",
    "read_csv_rows",
    "auto_map_columns",
    "validate_csv_row",
    "validate_csv_data",
    "HEADER_AUTO_MAP",
]
