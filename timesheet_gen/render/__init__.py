"""Terminal rendering of timesheets — content only, no layout guarantees.

Modules
-------
renderer
    ``TimesheetRenderer`` turns ``Timesheet``, ``TimeEntry`` lists and
    ``RunReport``s into Rich renderables.
"""

from timesheet_gen.render.renderer import (
    TimesheetRenderer,
    format_duration,
    format_hours,
)

__all__ = ["TimesheetRenderer", "format_duration", "format_hours"]
