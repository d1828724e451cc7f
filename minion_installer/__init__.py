"""
Salt minion universal installer.

This package detects the host platform, resolves and downloads a Salt
minion release, installs it with the native package tools, writes the
minion configuration and manages the minion service.
"""
