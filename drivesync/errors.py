"""
Errors raised by the store adapters, the metadata database and the folder/sync engines.

Every error carries an `error` code that ends up in the result objects returned by
the public operations, so callers can tell failures apart without catching exceptions.
"""


class DriveError(Exception):
    error = "ERROR"


class ConfigurationMissing(DriveError):
    """No object store could be resolved for an owner"""

    error = "S3_CONFIG_MISSING"


class NotFound(DriveError):
    error = "NOT_FOUND"


class FolderNotFound(NotFound):
    error = "FOLDER_NOT_FOUND"


class AccessDenied(DriveError):
    error = "ACCESS_DENIED"


class NameInvalid(DriveError):
    error = "INVALID_NAME"


class AlreadyExists(DriveError):
    error = "FOLDER_EXISTS"


class ConsistencyTimeout(DriveError):
    """A deletion was still visible after the verification retries ran out"""

    error = "CONSISTENCY_TIMEOUT"


class StoreError(DriveError):
    error = "STORE_ERROR"


class DatabaseError(DriveError):
    error = "DATABASE_ERROR"
