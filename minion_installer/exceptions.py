# minion_installer/exceptions.py
# -*- coding: utf-8 -*-
"""
Exceptions that abort an installer workflow.

Anything derived from FatalWorkflowError is reported to the user and makes
the process exit non-zero. Failures inside a fallback chain are never
raised; they are logged and the next mechanism is tried.
"""


class FatalWorkflowError(Exception):
    """The current workflow cannot continue."""
    pass


class UnsupportedPlatformError(FatalWorkflowError):
    pass


class InstallationError(FatalWorkflowError):
    """Every install mechanism for an artifact failed."""

    def __init__(self, message: str, last_error: str = ""):
        super().__init__(message)
        self.last_error = last_error


class UnsupportedPackageFormatError(InstallationError):
    pass


class DownloadError(FatalWorkflowError):
    pass


class ServiceError(FatalWorkflowError):
    pass


class ConfigurationError(FatalWorkflowError):
    """An error has been encountered in the configuration"""
    pass
