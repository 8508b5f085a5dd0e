"""Directory archive services.

This package provides:
- Directory job configuration and cron schedule parsing
- The directory walker and ZIP archiver
- The archive metadata store (SQL and in-memory)
- Retention planning and enforcement
- The job executor and the scheduler that drives it
"""
