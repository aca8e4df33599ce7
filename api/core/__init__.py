"""
Shared, cross-cutting code for the API.

`core/` holds small building blocks that the bulk-edit feature uses
(DB wiring, settings, logging). Keep feature-specific SQL and business logic
in the feature package (`bulk_edit/`).
"""
