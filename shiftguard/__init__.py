"""Shift overlap validation and time entry consistency for restaurant staff scheduling.

Modules:
- intervals: half-open interval overlap validation and hour arithmetic
- signatures: daily report signature state and its append-only log
- permissions: role/ownership gates, including the time entry mutability guard
- time_entries: time entry value type, hanging-entry and manager closes
- rates: hourly rate selection
- errors: error taxonomy
- config: YAML configuration with environment overrides
- domain: SQLAlchemy models and repositories (interval and signature sources)
- services: load, decide, commit workflows with audit logging
- io: CSV import
- cli: command-line interface entrypoints
"""

__all__ = [
    "intervals",
    "signatures",
    "permissions",
    "time_entries",
    "rates",
    "errors",
    "config",
    "domain",
    "services",
    "io",
    "cli",
]
