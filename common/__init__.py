"""Shared primitives for the multitool host.

Holds the clock sources, the synchronous event bus, and the timer and
capability data types used by the host and by tool modules.
"""
