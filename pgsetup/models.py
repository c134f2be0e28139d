from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Column, DateTime, Text, func
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateTable
from sqlmodel import Field, SQLModel

BUCKETS_CONFIG_TABLE = "buckets_config"

# Subtracted from the server's max_connections to get the service role's
# connection limit. With the default pool sizes and instance counts of every
# known deployment size, the role's aggregate connections stay below it:
#
#         max_connections  procs/instance  instances  conns/proc  role limit
#   coal  100              1               1          16          82
#   lab   210              4               3          16          192
#   prod  1000             4               3          16          982
RESERVE_CONNECTIONS = 18

# Exit status telling the service supervisor that this was a one-shot run
# rather than a daemon that died.
EXIT_NODAEMON = 94
EXIT_FAILURE = 1


class Flavor(str, Enum):
    SDC = "sdc"
    MANTA = "manta"


@dataclass(frozen=True)
class PrimaryDescriptor:
    address: str
    port: int

    def __str__(self) -> str:
        return f"{self.address}:{self.port}"


class BucketConfigORM(SQLModel, table=True):
    __tablename__ = BUCKETS_CONFIG_TABLE

    name: str = Field(sa_column=Column(Text, primary_key=True))
    index: str = Field(sa_column=Column(Text, nullable=False))
    pre: str = Field(sa_column=Column(Text, nullable=False))
    post: str = Field(sa_column=Column(Text, nullable=False))
    options: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    mtime: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=False), server_default=func.now(), nullable=False),
    )


_DIALECT = postgresql.dialect()


def quote_identifier(name: str) -> str:
    return _DIALECT.identifier_preparer.quote(name)


def create_buckets_config_sql() -> str:
    ddl = CreateTable(BucketConfigORM.__table__, if_not_exists=True)
    return str(ddl.compile(dialect=_DIALECT)).strip()


def alter_buckets_config_owner_sql(role: str) -> str:
    return f"ALTER TABLE {quote_identifier(BUCKETS_CONFIG_TABLE)} OWNER TO {quote_identifier(role)}"


def alter_role_connection_limit_sql(role: str, limit: int) -> str:
    return f"ALTER ROLE {quote_identifier(role)} WITH CONNECTION LIMIT {int(limit)}"


SHOW_MAX_CONNECTIONS_SQL = "SHOW max_connections"
