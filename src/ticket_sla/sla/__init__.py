"""
SLA Module
==========

Bounded Context for Service Level Agreement tracking and escalation.

Responsibilities:
- Start, re-bind and stop response/resolution clocks from ticket lifecycle events
- Compute elapsed time over business hours, excluding pause windows
- Evaluate clocks (OK, WARNING, OVERDUE, MET, STOPPED) and record history
- Fire escalation tiers once per clock cycle
- Periodic sweep over running clocks
- Reporting API (clocks, history, dashboard) and pause window management
"""
