"""SQL query text used by the record sources and persistence helpers."""
