"""
Shared, cross-cutting code for the API.

`core/` should contain small building blocks that multiple features use
(DB wiring and schema, settings, logging, payment and email clients, rate
limiting). Keep feature-specific SQL and business logic in the corresponding
feature package (e.g. `checkout/`).
"""
