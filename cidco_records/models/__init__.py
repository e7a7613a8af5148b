# Re-export all models for convenient imports
from cidco_records.models.user import User, UserRole
from cidco_records.models.plot_record import all_data, SEARCH_COLUMNS, RAW_LINK_COLUMNS

__all__ = [
    "User",
    "UserRole",
    "all_data",
    "SEARCH_COLUMNS",
    "RAW_LINK_COLUMNS",
]
