"""Exceptions raised by butane."""


class ButaneError(Exception):
    """Base class for every error raised by butane."""


class CannotConvertSqlVal(ButaneError):
    """A database value could not be converted to the requested type."""

    def __init__(self, sqltype, value):
        super().__init__(f"cannot convert {value!r} to {sqltype!r}")
        self.sqltype = sqltype
        self.value = value


class ValueNotSaved(ButaneError):
    """An object with an automatic primary key has not been saved yet."""

    def __init__(self, message="value has not been saved"):
        super().__init__(message)


class ValueNotLoaded(ButaneError):
    """A lazily loaded value was accessed before being loaded."""

    def __init__(self, message="value has not been loaded"):
        super().__init__(message)


class NotInitialized(ButaneError):
    """An object was used before being initialized."""

    def __init__(self, message="not initialized"):
        super().__init__(message)


class CannotResolveType(ButaneError):
    """A deferred column type could not be resolved."""

    def __init__(self, key):
        super().__init__(f"cannot resolve type {key}")
        self.key = key


class UnknownSqlType(ButaneError):
    """A type key does not name any known SQL type."""

    def __init__(self, key):
        super().__init__(f"unknown sql type {key}")
        self.key = key


class MigrationError(ButaneError):
    """A migration could not be found, created or applied."""


class UnknownBackend(ButaneError):
    """No SQL is available for the named backend."""

    def __init__(self, name):
        super().__init__(f"unknown backend {name}")
        self.name = name