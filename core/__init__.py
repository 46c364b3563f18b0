"""Core (UI-agnostic) dashboard logic.

This package contains:
- CSV loading and record normalization (text -> pandas)
- filter normalization
- monthly aggregation, summary totals and series projection
- chart helpers (Altair -> Vega-Lite spec dict)
- the auth/vote boundary used by the UI and API
"""
