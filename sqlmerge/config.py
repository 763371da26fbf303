"""Configuration models for sqlmerge."""

import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Marker SQL Server uses for session-scoped temporary tables
TEMPORARY_TABLE_PREFIX = "#"


def generate_temporary_table_name() -> str:
    """Unique temporary table name, safe for concurrent merges."""
    return f"{TEMPORARY_TABLE_PREFIX}Merge{uuid.uuid4().hex}"


class MergeMode(str, Enum):
    """
    How the source rows reach the server.

    Values:
    * `auto` - Inline statement for small row sets, bulk load past the threshold.
    * `bulk_load` - Always bulk load into a temporary table and merge from it.
    * `inline_statement` - Always embed the rows as a VALUES list.
    """

    AUTO = "auto"
    BULK_LOAD = "bulk_load"
    INLINE_STATEMENT = "inline_statement"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class ColumnMapping(BaseModel):
    """
    One mapped column.

    Example:
    ```yaml
    - source_column: "EmailAddress"
      target_column: "Email"
      native_type: "nvarchar(256)"
      is_key: true
    ```
    """

    model_config = ConfigDict(validate_assignment=True)

    source_column: Optional[str] = Field(
        default=None, description="Column name in the source rows and the temporary table"
    )
    target_column: Optional[str] = Field(
        default=None, description="Column name in the target table (defaults to source_column)"
    )
    native_type: Optional[str] = Field(
        default=None, description="SQL Server type, required for bulk loading (e.g. 'int')"
    )
    can_bulk_load: bool = True
    can_insert: bool = True
    can_update: bool = True
    is_key: bool = False
    is_ignored: bool = False

    @model_validator(mode="after")
    def key_columns_are_not_updated(self):
        # also runs on assignment; the guard stops the nested validation
        if self.is_key and self.can_update:
            self.can_update = False
        return self

    def __str__(self) -> str:
        return (
            f"Source: {self.source_column}, Target: {self.target_column}, "
            f"NativeType: {self.native_type}, Key: {self.is_key}, Ignored: {self.is_ignored}"
        )


class MergeDefinition(BaseModel):
    """
    Declarative mapping between a source row set and one target table.

    Example:
    ```yaml
    merge:
      target_table: "dbo.User"
      include_delete: false
      mode: "auto"
      columns:
        - source_column: "Id"
          native_type: "int"
          is_key: true
        - source_column: "Name"
          native_type: "nvarchar(100)"
    ```
    """

    target_table: Optional[str] = Field(default=None, description="Table to merge into")
    temporary_table: Optional[str] = Field(
        default_factory=generate_temporary_table_name,
        description="Temporary table used by the bulk strategy",
    )
    columns: List[ColumnMapping] = Field(default_factory=list)
    include_insert: bool = Field(default=True, description="Insert rows missing from the target")
    include_update: bool = Field(default=True, description="Update rows found in the target")
    include_delete: bool = Field(
        default=False, description="Delete target rows missing from the source"
    )
    include_output: bool = Field(default=False, description="Return the changed rows")
    identity_insert: bool = Field(
        default=False, description="Allow explicit values for identity columns on insert"
    )
    mode: MergeMode = MergeMode.AUTO

    def mapped_columns(self) -> List[ColumnMapping]:
        """Columns that take part in the merge at all."""
        return [c for c in self.columns if not c.is_ignored]

    def merge_columns(self) -> List[ColumnMapping]:
        """Mapped columns that are matched on, inserted or updated."""
        return [c for c in self.mapped_columns() if c.is_key or c.can_insert or c.can_update]

    def key_columns(self) -> List[ColumnMapping]:
        return [c for c in self.mapped_columns() if c.is_key]

    def column(self, source_column: str) -> ColumnMapping:
        """Find the column mapped from ``source_column``, adding it if missing."""
        for column in self.columns:
            if column.source_column == source_column:
                return column

        column = ColumnMapping(source_column=source_column, target_column=source_column)
        self.columns.append(column)
        return column


class MergeSettings(BaseModel):
    """
    Execution tuning.

    Example:
    ```yaml
    settings:
      bulk_threshold: 1000
      bulk_batch_size: 5000
    ```
    """

    bulk_threshold: int = Field(
        default=1000,
        ge=0,
        description="In auto mode, row counts above this use the bulk strategy",
    )
    bulk_batch_size: int = Field(default=1000, gt=0, description="Rows per bulk load batch")


class LoggingConfig(BaseModel):
    """
    Logging configuration.

    Example:
    ```yaml
    logging:
      level: "INFO"
      structured: true
    ```
    """

    level: LogLevel = LogLevel.INFO
    structured: bool = Field(default=False, description="Output JSON logs")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Extra metadata in logs")


class SqlServerAuthMode(str, Enum):
    SQL = "sql"
    AAD_MSI = "aad_msi"
    TRUSTED = "trusted"


class SqlServerConnectionConfig(BaseModel):
    """
    SQL Server connection.

    Example:
    ```yaml
    connection:
      server: "myserver.database.windows.net"
      database: "crm"
      auth_mode: "sql"
      username: "loader"
      password: "${SQL_PASSWORD}"
    ```
    """

    server: str
    database: str
    driver: str = "ODBC Driver 18 for SQL Server"
    port: int = 1433
    auth_mode: SqlServerAuthMode = SqlServerAuthMode.SQL
    username: Optional[str] = None
    password: Optional[str] = None
    timeout: int = 30
    encrypt: bool = True
    trust_server_certificate: bool = False

    @model_validator(mode="after")
    def check_credentials(self):
        if self.auth_mode == SqlServerAuthMode.SQL and not (self.username and self.password):
            raise ValueError("auth_mode='sql' requires both 'username' and 'password'")
        return self


class MergeProjectConfig(BaseModel):
    """A merge job as declared in a YAML project file."""

    merge: MergeDefinition
    connection: Optional[SqlServerConnectionConfig] = None
    settings: MergeSettings = Field(default_factory=MergeSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("merge")
    @classmethod
    def merge_requires_columns(cls, v: MergeDefinition) -> MergeDefinition:
        if not v.columns:
            raise ValueError("merge.columns must list at least one column")
        return v
