"""
Core collaborators.

Components:
- ports.py: Protocols for the error strategy, host timer and identity map
- environment.py: SchedulerOptions -> Environment (error strategy, platform, hooks)
- platform.py: asyncio-backed and manual (virtual clock) host timers
"""
