"""Time-attribution and aggregation engine.

Modules
-------
session_builder
    Folds a repository's commits into ``WorkSession``s.
tag_parser
    Pure ``message -> project id`` lookup for commit-message markers.
allocation_engine
    Splits sessions across (client, project) pairs.
time_ledger
    Event-sourced, hash-chained SQLite store of time entries.
aggregator
    Rolls ledger entries into per-client ``Timesheet``s.
approval
    Fingerprints finalized timesheets and issues approval tokens.
registry
    JSON registry of the user, clients and repositories.
engine
    ``TimesheetEngine`` wiring all of the above together.
"""
