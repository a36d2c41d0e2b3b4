"""
Incident Module
===============

Bounded Context for the incident lifecycle.

Responsibilities:
- Create incidents with classified priority and SLA deadlines
- Enforce the guarded status state machine and its gates
- Pause/resume SLA clocks while incidents are pending
- Keep the append-only timeline and the audit log
- Detect and merge duplicate incidents
"""

__version__ = "1.0.0"
