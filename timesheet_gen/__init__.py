"""timesheet-gen: monthly timesheets from git commit history.

Turns the commits of one or more client repositories into work sessions,
allocates them to clients and projects, keeps the result in an editable,
auditable ledger, and fingerprints finalized timesheets for approval.
"""

__version__ = "0.2.0"
__description__ = "Monthly client timesheets derived from git commit history"

from timesheet_gen.core.engine import TimesheetEngine
from timesheet_gen.core.time_ledger import TimeLedger
from timesheet_gen.cli.app import app as cli

__all__ = ["TimesheetEngine", "TimeLedger", "cli", "__version__"]
