"""Core (UI-agnostic) court-office analytics logic.

This package contains:
- spreadsheet loading (XLSX/CSV/pasted text -> typed records)
- derived case metrics and alert rules
- period filters and aggregates
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
- key-value persistence of the two datasets
"""
