"""
Recurring Obligation Timeline Engine

Materializes one timeline record per client, obligation, sub-obligation and
recurrence period for the compliance obligations assigned to practice clients,
on a fixed daily/monthly/quarterly/yearly schedule.
"""

__version__ = "1.0.0"
__author__ = "Practice Management Team"
