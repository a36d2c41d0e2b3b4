"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded contexts
(SLA and Incidents).

Architecture Pattern: Modular Monolith
- Each module (sla, incidents) is a bounded context
- Shared kernel contains only generic infrastructure
- Domain models are extended within each module

DO NOT add business logic from SLA or Incidents to shared kernel.
"""

__version__ = "1.0.0"
