"""timesheet-gen CLI — Typer-based command-line interface.

Provides the ``timesheet-gen`` command with subcommands for registering
repositories, building monthly timesheets, editing ledger entries and
moving a client's month through draft, finalized and approved.

All output uses Rich for formatted terminal display.
"""
