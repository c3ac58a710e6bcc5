"""
Ticket SLA Engine
=================

Tracks response and resolution clocks for support tickets, evaluates them
against configured SLA rules and escalates as thresholds are crossed.
"""

__version__ = "1.0.0"
