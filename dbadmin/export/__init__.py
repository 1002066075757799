"""
Export serializers and cross-engine type mapping.
"""

from dbadmin.export.csv_exporter import CSVExporter
from dbadmin.export.sql_exporter import SQLExporter
from dbadmin.export.type_mapper import (
    TypeMapper,
    TypeMappingResult,
    TypeOption,
    TypeRule,
    TypeSummary,
)

__all__ = [
    "CSVExporter",
    "SQLExporter",
    "TypeMapper",
    "TypeMappingResult",
    "TypeOption",
    "TypeRule",
    "TypeSummary",
]
