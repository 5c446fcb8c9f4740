"""Host package for the multitool runtime.

This package provides the timer scheduler, the CoreContext facade handed to
tool modules, and the configuration and logging setup for the host.
"""
