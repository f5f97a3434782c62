"""
Report filters annotating rows with the segment that selects them, and
dropping the user count from reports without users.
"""

from urllib.parse import quote

from custom_dimensions.dimensions.entities import Dimension
from custom_dimensions.reports.datatable import DataTable

# Label the archiver uses for visits/actions without a value
NOT_DEFINED_LABEL = "__mdt__NotDefined"

USERS_COLUMN = "nb_users"


def _encode(value: str) -> str:
    return quote(value, safe="")


def segment_for_value(dimension_id: int, value: str) -> str:
    if value == NOT_DEFINED_LABEL:
        return f"dimension{dimension_id}=="
    return f"dimension{dimension_id}=={_encode(value)}"


def add_segment_metadata(table: DataTable, dimension_id: int) -> None:
    for row in table.rows:
        row.metadata["segment"] = segment_for_value(dimension_id, row.label)


def add_subtable_segment_metadata(table: DataTable, dimension_id: int, parent_value: str) -> None:
    """Rows of an action-scope subtable are URLs recorded under ``parent_value``"""
    parent_segment = segment_for_value(dimension_id, parent_value)
    for row in table.rows:
        row.metadata["segment"] = f"{parent_segment};actionUrl=@{_encode(row.label)}"


def add_dimension_metadata(table: DataTable, dimension: Dimension) -> None:
    table.metadata.update(
        {
            "idcustomdimension": dimension.dimension_id,
            "name": dimension.name,
            "scope": dimension.scope.value,
            "index": dimension.index,
        }
    )


def _iter_rows(table: DataTable):
    for row in table.rows:
        yield row
        if row.subtable is not None:
            yield from _iter_rows(row.subtable)


def remove_user_if_needed(table: DataTable) -> None:
    """Drop the ``nb_users`` column when no row, subtables included, counts a user"""
    rows = list(_iter_rows(table))
    if any((row.columns.get(USERS_COLUMN) or 0) > 0 for row in rows):
        return
    for row in rows:
        row.columns.pop(USERS_COLUMN, None)
