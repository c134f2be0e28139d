from __future__ import annotations


class PgSetupException(Exception):
    pass


class ConfigException(PgSetupException):
    pass


class DiscoveryException(PgSetupException):
    pass


class QueryError(PgSetupException):
    def __init__(self, message: str, *, sql: str, req_id: str | None = None) -> None:
        self.sql = sql
        self.req_id = req_id
        super().__init__(f"{message} (sql={sql!r}, req_id={req_id})")


class StepFailedException(PgSetupException):
    """A hard failure inside one provisioning step."""

    def __init__(self, step: str, cause: BaseException) -> None:
        self.step = step
        self.cause = cause
        super().__init__(f"step '{step}' failed: {cause}")
