"""DDL for the physical tables behind structures."""

from ahoi.storage.tables import BASE_COLUMNS, DataTableManager, build_table, table_name_for

__all__ = ["BASE_COLUMNS", "DataTableManager", "build_table", "table_name_for"]
