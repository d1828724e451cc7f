"""
Shared utilities: command execution, file handling, downloads and logging.
"""
