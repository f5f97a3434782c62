"""
Report Assembly Module
"""
from .datatable import DataTable, Row
from .archive import ArchiveReader, DatabaseArchiveReader, build_record_name

__all__ = [
    "DataTable",
    "Row",
    "ArchiveReader",
    "DatabaseArchiveReader",
    "build_record_name",
]
