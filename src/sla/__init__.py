"""
SLA Module
==========

Bounded Context for Service Level Agreement arithmetic.

Responsibilities:
- Classify priority from impact and urgency
- Calculate response/resolution deadlines against business-hours calendars
- Resolve an incident's deadlines from organization policies or default targets
- Evaluate incident SLA clocks (on track, at risk, breached, met, paused)
"""

__version__ = "1.0.0"
