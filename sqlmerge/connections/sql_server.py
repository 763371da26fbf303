"""
SQL Server Connection
=====================

Builds SQLAlchemy engines for SQL Server over pyodbc and wraps them in
execution gateways for merges.
"""

from typing import List, Optional
from urllib.parse import quote_plus

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from sqlmerge.config import SqlServerAuthMode, SqlServerConnectionConfig
from sqlmerge.exceptions import ConnectionError
from sqlmerge.gateways.sql_server import SqlAlchemyGateway
from sqlmerge.utils.logging_context import get_logging_context


class SqlServerConnection:
    """
    SQL Server connection.

    Supports:
    - SQL authentication (username/password)
    - Azure Active Directory Managed Identity
    - Windows integrated (trusted) authentication

    Engines enable pyodbc ``fast_executemany`` so the bulk strategy sends
    each batch in a single round trip.
    """

    def __init__(self, config: SqlServerConnectionConfig):
        self.config = config
        self._engine: Optional[Engine] = None

        if config.password:
            get_logging_context().logger.register_secret(config.password)

    @property
    def name(self) -> str:
        return f"SqlServer({self.config.server}/{self.config.database})"

    def odbc_dsn(self) -> str:
        """Build the ODBC connection string.

        Example:
            >>> SqlServerConnection(config).odbc_dsn()
            'Driver={ODBC Driver 18 for SQL Server};Server=tcp:myserver,1433;...'
        """
        cfg = self.config
        dsn = (
            f"Driver={{{cfg.driver}}};"
            f"Server=tcp:{cfg.server},{cfg.port};"
            f"Database={cfg.database};"
            f"Encrypt={'yes' if cfg.encrypt else 'no'};"
            f"TrustServerCertificate={'yes' if cfg.trust_server_certificate else 'no'};"
            f"Connection Timeout={cfg.timeout};"
        )

        if cfg.auth_mode == SqlServerAuthMode.SQL:
            dsn += f"UID={cfg.username};PWD={cfg.password};"
        elif cfg.auth_mode == SqlServerAuthMode.AAD_MSI:
            dsn += "Authentication=ActiveDirectoryMsi;"
        elif cfg.auth_mode == SqlServerAuthMode.TRUSTED:
            dsn += "Trusted_Connection=yes;"

        return dsn

    def connection_url(self) -> str:
        return f"mssql+pyodbc:///?odbc_connect={quote_plus(self.odbc_dsn())}"

    def get_engine(self) -> Engine:
        """
        Get or create the SQLAlchemy engine.

        Raises:
            ConnectionError: If the engine cannot be created or reached.
        """
        if self._engine is not None:
            return self._engine

        try:
            engine = create_engine(
                self.connection_url(),
                fast_executemany=True,
                pool_pre_ping=True,
                pool_recycle=3600,
                echo=False,
            )

            with engine.connect():
                pass

        except Exception as e:
            raise ConnectionError(
                connection_name=self.name,
                reason=f"Failed to create engine: {e}",
                suggestions=self._get_error_suggestions(str(e)),
            ) from e

        get_logging_context().debug(f"Connected to {self.name}", driver=self.config.driver)
        self._engine = engine
        return engine

    def gateway(self) -> SqlAlchemyGateway:
        """Execution gateway over this connection's engine."""
        return SqlAlchemyGateway(self.get_engine())

    def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def _get_error_suggestions(self, error_msg: str) -> List[str]:
        suggestions = []
        error_lower = error_msg.lower()

        if "login failed" in error_lower:
            suggestions.append("Check username and password")
            suggestions.append(
                f"Verify auth_mode is correct (current: {self.config.auth_mode.value})"
            )
            if "identity" in error_lower:
                suggestions.append("Ensure the Managed Identity has access to the database")

        if "firewall" in error_lower or "tcp provider" in error_lower:
            suggestions.append("Check the server firewall rules")
            suggestions.append("Ensure the client IP is allowed")

        if "certificate" in error_lower:
            suggestions.append("Set trust_server_certificate: true for self-signed certificates")

        if "driver" in error_lower or "data source name not found" in error_lower:
            suggestions.append(f"Verify ODBC driver '{self.config.driver}' is installed")
            suggestions.append("On Linux: sudo apt-get install msodbcsql18")

        return suggestions
