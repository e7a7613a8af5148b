"""
Registry Service - queries and edits over the all_data plot registry

Filters are plain string equalities ANDed together. A filter that is not
given (or is an empty string) is left out of the WHERE clause altogether,
it never turns into a wildcard.

Read paths degrade instead of failing: option lists and searches return []
when the database errors, and summaries do the same after logging.
"""

import re
import time
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import Integer, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cidco_records.core.exceptions import (
    DatabaseWriteError,
    RecordNotFoundError,
    UnknownColumnError,
    ValidationError,
)
from cidco_records.core.logging_config import logger
from cidco_records.models.plot_record import all_data, SEARCH_COLUMNS, RAW_LINK_COLUMNS
from cidco_records.schemas.registry import SummaryOverview, SummaryRow, SummaryTotals


NOT_SPECIFIED = "Not Specified"
OTHERS_SEPARATOR = "--- OTHERS ---"

# Plot-use categories the dashboard lists first, in this order
PRIMARY_USE_ORDER = ("COMMERCIAL", "RESIDENTIAL", "RESIDENTIAL+COMMERCIAL", "SERVICE INDUSTRY")

# Keys the detail view adds to a record; never written back
DERIVED_KEYS = frozenset({"images", "has_pdf", "has_map", "pdf_url", "map_url"})

NO_CHANGES = "No changes"
UPDATED = "Record updated successfully"

_PLAIN_NUMBER = re.compile(r"^[0-9.]+$")
_NOT_NUMERIC = re.compile(r"[^0-9.]")


class SummaryGroup(str, Enum):
    """Columns a summary can be grouped by"""
    PLOT_USE = "PLOT_USE_FOR_INVOICE"
    DEPARTMENT = "Department_Remark"


# filter name -> registry column
FILTER_COLUMNS = {
    "region": "REGION",
    "node": "NAME_OF_NODE",
    "sector": "SECTOR_NO_",
    "block": "BLOCK_ROAD_NAME",
    "plot": "PLOT_NO_",
}

# Which already-chosen filters narrow each option list
CASCADE = {
    "REGION": (),
    "NAME_OF_NODE": ("region",),
    "SECTOR_NO_": ("node", "region"),
    "BLOCK_ROAD_NAME": ("node", "sector", "region"),
    "PLOT_NO_": ("node", "sector", "block", "region"),
}

SUMMARY_FILTERS = ("region", "node", "sector")


@dataclass(frozen=True)
class RegistryFilter:
    region: Optional[str] = None
    node: Optional[str] = None
    sector: Optional[str] = None
    block: Optional[str] = None
    plot: Optional[str] = None

    def only(self, *names: str) -> "RegistryFilter":
        """Copy keeping just the named filters"""
        return replace(RegistryFilter(), **{name: getattr(self, name) for name in names})

    def clauses(self) -> list:
        return [
            all_data.c[column] == getattr(self, name)
            for name, column in FILTER_COLUMNS.items()
            if getattr(self, name)
        ]


# ----------------------------------------------------------------------
# Pure helpers
# ----------------------------------------------------------------------

def _area_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal(0)
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))

    text = str(value)
    if not _PLAIN_NUMBER.match(text):
        text = _NOT_NUMERIC.sub("", text)
    if not text:
        return Decimal(0)
    try:
        return Decimal(text)
    except InvalidOperation:
        # e.g. "1.2.3" or a lone "."
        return Decimal(0)


def parse_area(value: Any) -> float:
    """
    Invoice area as a number. The column is free text: "1234.5" parses
    directly, "1,234.5 sqm" is stripped down to "1234.5", anything with no
    digits left is 0.
    """
    return float(_area_decimal(value))


def _count(value: Any) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        return 0


def _category(value: Any) -> str:
    if value is None:
        return NOT_SPECIFIED
    text = str(value)
    return text if text != "" else NOT_SPECIFIED


def aggregate_summary(rows: Iterable[Sequence[Any]]) -> List[SummaryRow]:
    """
    Group (category, area, additional_count, base_count[, plot_count]) rows.

    A row with a plot_count stands for that many plots sharing the same area
    text, as the database returns them when grouped; the parsed area is
    multiplied accordingly.

    Result is ordered by summed area, largest first; percent is each group's
    share of the grand total area (0 everywhere when that total is 0).
    """
    groups: Dict[str, List] = {}
    for category, raw_area, additional, base, *plot_count in rows:
        plots = _count(plot_count[0]) if plot_count else 1
        group = groups.setdefault(_category(category), [Decimal(0), 0, 0])
        group[0] += _area_decimal(raw_area) * plots
        group[1] += _count(additional)
        group[2] += _count(base)

    total_area = sum((group[0] for group in groups.values()), Decimal(0))
    ordered = sorted(groups.items(), key=lambda item: (-item[1][0], item[0]))

    summary = []
    for category, (area, additional, base) in ordered:
        percent = round(float(area / total_area * 100), 2) if total_area > 0 else 0
        summary.append(SummaryRow(
            category=category,
            area=float(area),
            additionalCount=additional,
            basePlotCount=base,
            percent=percent,
        ))
    return summary


def summary_totals(rows: Iterable[SummaryRow]) -> SummaryTotals:
    totals = SummaryTotals()
    for row in rows:
        if row.category == OTHERS_SEPARATOR:
            continue
        totals.area += row.area
        totals.additionalCount += row.additionalCount
        totals.basePlotCount += row.basePlotCount
    return totals


def arrange_use_summary(rows: List[SummaryRow]) -> List[SummaryRow]:
    """Primary plot uses first (fixed order), then the rest alphabetically"""
    primary, others = [], []
    for row in rows:
        key = row.category.upper().strip()
        (primary if key in PRIMARY_USE_ORDER else others).append(row)

    primary.sort(key=lambda row: PRIMARY_USE_ORDER.index(row.category.upper().strip()))
    others.sort(key=lambda row: row.category.casefold())

    if primary and others:
        separator = SummaryRow(
            category=OTHERS_SEPARATOR, area=0, additionalCount=0, basePlotCount=0, percent=0
        )
        return primary + [separator] + others
    return primary + others


def _coerce_id(value: Any) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid record ID: {value!r}", field="ID")


def _coerce_value(column_name: str, value: Any) -> Any:
    """Normalise an incoming form value for the target column"""
    if value is None or value == "":
        return None
    column = all_data.c[column_name]
    if isinstance(value, (dict, list)):
        raise ValidationError(f"Unsupported value for {column_name}", field=column_name)
    if isinstance(column.type, Integer):
        try:
            return int(Decimal(str(value).strip()))
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{column_name} must be a whole number", field=column_name)
    if not isinstance(value, str):
        return str(value)
    return value


# ----------------------------------------------------------------------
# Service
# ----------------------------------------------------------------------

class RegistryService:
    """Per-request accessor bound to one database session"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def distinct_values(self, column: str, filters: RegistryFilter = RegistryFilter()) -> List[str]:
        """Sorted non-null values of column, narrowed by its upstream filters"""
        if column not in CASCADE:
            raise ValueError(f"{column} is not a filter column")

        target = all_data.c[column]
        scoped = filters.only(*CASCADE[column])
        stmt = (
            select(target)
            .distinct()
            .where(target.is_not(None), *scoped.clauses())
            .order_by(target)
        )

        start = time.perf_counter()
        try:
            result = await self.db.execute(stmt)
            values = [value for (value,) in result.all()]
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning(f"[Registry] Distinct {column} query failed: {e}")
            return []

        logger.log_db_query("distinct", "all_data", (time.perf_counter() - start) * 1000,
                            rows_affected=len(values), column=column)
        return values

    async def list_regions(self) -> List[str]:
        return await self.distinct_values("REGION")

    async def list_nodes(self, region: Optional[str] = None) -> List[str]:
        return await self.distinct_values("NAME_OF_NODE", RegistryFilter(region=region))

    async def list_sectors(self, node: Optional[str] = None, region: Optional[str] = None) -> List[str]:
        return await self.distinct_values("SECTOR_NO_", RegistryFilter(node=node, region=region))

    async def list_blocks(self, node: Optional[str] = None, sector: Optional[str] = None,
                          region: Optional[str] = None) -> List[str]:
        return await self.distinct_values(
            "BLOCK_ROAD_NAME", RegistryFilter(node=node, sector=sector, region=region)
        )

    async def list_plots(self, node: Optional[str] = None, sector: Optional[str] = None,
                         block: Optional[str] = None, region: Optional[str] = None) -> List[str]:
        return await self.distinct_values(
            "PLOT_NO_", RegistryFilter(node=node, sector=sector, block=block, region=region)
        )

    async def search(self, filters: RegistryFilter) -> List[Dict[str, Any]]:
        """
        Rows matching every given filter, projected to the search columns.
        No filter at all means every row.
        """
        stmt = select(*(all_data.c[name] for name in SEARCH_COLUMNS)).where(*filters.clauses())

        start = time.perf_counter()
        try:
            result = await self.db.execute(stmt)
            rows = [dict(row._mapping) for row in result.all()]
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning(f"[Registry] Search failed: {e}")
            return []

        logger.log_db_query("search", "all_data", (time.perf_counter() - start) * 1000,
                            rows_affected=len(rows))
        return rows

    async def summary(self, group_by: SummaryGroup,
                      filters: RegistryFilter = RegistryFilter()) -> List[SummaryRow]:
        group_column = all_data.c[SummaryGroup(group_by).value]
        area_column = all_data.c.PLOT_AREA_FOR_INVOICE
        scoped = filters.only(*SUMMARY_FILTERS)
        # Area is free text, so it is parsed once per distinct value afterwards
        stmt = (
            select(
                group_column,
                area_column,
                func.sum(func.coalesce(all_data.c.Additional_Plot_Count, 0)),
                func.sum(func.coalesce(all_data.c.Base_Plot_Count, 0)),
                func.count(),
            )
            .where(*scoped.clauses())
            .group_by(group_column, area_column)
        )

        try:
            result = await self.db.execute(stmt)
            rows: List[Tuple] = [tuple(row) for row in result.all()]
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Summary SQL Error ({group_column.name}): {e}")
            return []

        return aggregate_summary(rows)

    async def overview(self, filters: RegistryFilter = RegistryFilter()) -> SummaryOverview:
        use_rows = arrange_use_summary(await self.summary(SummaryGroup.PLOT_USE, filters))
        department_rows = await self.summary(SummaryGroup.DEPARTMENT, filters)
        return SummaryOverview(
            use=use_rows,
            department=department_rows,
            useTotals=summary_totals(use_rows),
            departmentTotals=summary_totals(department_rows),
        )

    async def get_record(self, record_id: Any) -> Dict[str, Any]:
        """Full row without the stored raw document links"""
        try:
            key = _coerce_id(record_id)
        except ValidationError:
            raise RecordNotFoundError(record_id)

        result = await self.db.execute(select(all_data).where(all_data.c.ID == key))
        row = result.first()
        if row is None:
            raise RecordNotFoundError(record_id)

        record = dict(row._mapping)
        for column in RAW_LINK_COLUMNS:
            record.pop(column, None)
        return record

    async def update_record(self, payload: Dict[str, Any]) -> str:
        """
        Apply a partial edit to one row. Keys added by the detail view and
        the ID itself are never written; blank values become NULL.
        """
        record_id = payload.get("ID")
        fields = {
            key: value for key, value in payload.items()
            if key != "ID" and key not in DERIVED_KEYS
        }
        if record_id in (None, "") or not fields:
            return NO_CHANGES

        key = _coerce_id(record_id)
        unknown = [name for name in fields if name not in all_data.c]
        if unknown:
            raise UnknownColumnError(unknown)

        values = {name: _coerce_value(name, value) for name, value in fields.items()}
        stmt = update(all_data).where(all_data.c.ID == key).values(values)

        start = time.perf_counter()
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.log_error_with_context(e, context="record update", record_id=key)
            raise DatabaseWriteError("Could not update record", cause=e)

        logger.log_db_query("update", "all_data", (time.perf_counter() - start) * 1000,
                            rows_affected=result.rowcount, record_id=key, columns=sorted(values))
        return UPDATED
