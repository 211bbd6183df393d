"""Custom exceptions for Mail Reconciler."""


class MailReconcilerError(Exception):
    """Base exception for all Mail Reconciler errors."""


class RemoteMailboxError(MailReconcilerError):
    """Exception raised when the remote mailbox service fails or is unreachable."""


class AuthenticationError(MailReconcilerError):
    """Exception raised for authentication failures."""


class ConfigurationError(MailReconcilerError):
    """Exception raised for configuration related errors."""


class ArchiveStoreError(MailReconcilerError):
    """Exception raised when the local archive store cannot be read or written."""
