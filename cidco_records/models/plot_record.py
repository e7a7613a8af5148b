"""
The all_data plot registry table.

Rows are bulk-imported from the allotment spreadsheets, so column names keep
the spreadsheet headers verbatim (trailing underscores and mixed case
included) and almost everything is free text. The application never inserts
or deletes rows here.
"""
from sqlalchemy import Table, Column, Integer, Text

from cidco_records.core.database import Base


def _ordinal_suffix(n: int) -> str:
    return {2: "ND", 3: "RD"}.get(n, "TH")


def succession_columns():
    """Owner name / transfer date pairs for the 2nd..11th owner"""
    columns = []
    for n in range(2, 12):
        suffix = _ordinal_suffix(n)
        columns.append(Column(f"NAME_OF_{n}{suffix}_OWNER", Text))
        columns.append(Column(f"_{n}{suffix}_OWNER_TRANSFER_DATE", Text))
    return columns


all_data = Table(
    "all_data",
    Base.metadata,
    Column("ID", Integer, primary_key=True, autoincrement=True),

    # Location hierarchy (region > node > sector > block > plot)
    Column("REGION", Text, index=True),
    Column("NAME_OF_NODE", Text, index=True),
    Column("SECTOR_NO_", Text, index=True),
    Column("BLOCK_ROAD_NAME", Text),
    Column("PLOT_NO_", Text),
    Column("PLOT_NO_AFTER_SURVEY", Text),
    Column("SUB_PLOT_NO_", Text),
    Column("UID", Text),

    # Allotment file
    Column("DATE_OF_ALLOTMENT", Text),
    Column("NAME_OF_ORIGINAL_ALLOTTEE", Text),
    Column("PLOT_AREA_SQM_", Text),
    Column("BUILTUP_AREA_SQM_", Text),
    Column("FSI", Text),
    Column("RATE_SQM_", Text),
    Column("TOTAL_PRICE_RS_", Text),
    Column("LEASE_TERM_YEARS_", Text),
    Column("USE_OF_PLOT_ACCORDING_TO_FILE", Text),
    Column("OCCUPANCY_CERTIFICATE", Text),
    Column("COMENCEMENT_CERTIFICATE", Text),
    Column("PLANNING_USE", Text),
    Column("FILE_NAME", Text),
    Column("FILE_LOCATION", Text),
    Column("Department_Remark", Text),
    Column("INVESTIGATOR_NAME", Text),
    Column("INVESTIGATOR_REMARKS", Text),

    # Invoice figures
    Column("PLOT_AREA_FOR_INVOICE", Text),
    Column("PLOT_USE_FOR_INVOICE", Text),
    Column("Additional_Plot_Count", Integer),
    Column("Base_Plot_Count", Integer),
    Column("Minimum_Plot_Count", Integer),
    Column("Tentative_Plot_Count", Integer),
    Column("Percentage_Match", Text),

    *succession_columns(),

    # Physical survey
    Column("TOTAL_AREA_SQM", Text),
    Column("MAP_AREA", Text),
    Column("USE_OF_PLOT", Text),
    Column("SUB_USE_OF_PLOT", Text),
    Column("PLOT_STATUS", Text),
    Column("SURVEY_REMARKS", Text),
    Column("SUBMISSION", Text),
    Column("PHOTO_FOLDER", Text),
    Column("IMAGES_PRESENT", Text),
    Column("PDFS_PRESENT", Text),

    # Raw storage links from the import; never sent to clients
    Column("pdf_url", Text),
    Column("map_url", Text),
)

# Columns the search view lists
SEARCH_COLUMNS = (
    "ID",
    "NAME_OF_NODE",
    "SECTOR_NO_",
    "BLOCK_ROAD_NAME",
    "PLOT_NO_",
    "PLOT_NO_AFTER_SURVEY",
)

# Stored links replaced by freshly signed ones on the detail view
RAW_LINK_COLUMNS = ("pdf_url", "map_url")
