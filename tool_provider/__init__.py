"""Tool provider package for the multitool runtime.

This package provides the capability registry that tool modules register
against, including on-demand loading of tool modules by source locator.
"""
