from __future__ import annotations


class DiskAuditError(Exception):
    """Base class for errors raised by diskaudit."""


class EnumerationError(DiskAuditError):
    """The enumeration backend could not be started."""


class RankerClosedError(DiskAuditError, RuntimeError):
    pass


class LockError(DiskAuditError):
    pass


class LogBootstrapError(DiskAuditError):
    pass
