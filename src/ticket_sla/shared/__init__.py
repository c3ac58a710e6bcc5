"""
Shared Kernel Module
====================

Generic infrastructure used by every bounded context: structured logging
and API middleware.

DO NOT add SLA business logic to the shared kernel.
"""
