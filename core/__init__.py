"""Core (UI-agnostic) FactoryLink logic.

This package contains:
- manufacturer record loading (CSV -> pandas)
- filter normalization and evaluation, sorting, paging, selection
- CSV export of selected manufacturers
- the mock auth and workspace stores (pure reducers over frozen state)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
