"""5C Community Group Orchestrator

This service coordinates community group engagement:
- Scores group health across the five C dimensions
- Drives group matching, approval and export
- Sends group notifications by email and SMS
- Threads SMS conversations per phone number
"""

__version__ = "1.0.0"
