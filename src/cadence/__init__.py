"""
Cadence - calendar-aware recurrence rules and reminder scheduling.

Packages:
- cadence.core: errors, logging, settings, persistence helpers
- cadence.rules: rule compiler, holiday calendar, occurrence generation
- cadence.scheduling: execution plans, materializer, scheduler loop
- cadence.ops: typed operations used by the CLI and SDK callers
"""

__version__ = "0.1.0"
