"""Bundled tool modules.

Each module exposes ``setup(core)`` and registers its capability with the
CoreContext it receives.
"""
