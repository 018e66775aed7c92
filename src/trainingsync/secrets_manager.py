"""Secure storage for the Exchange impersonation service account."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import TIMESTAMP, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

logger = logging.getLogger(__name__)

EXCHANGE_SERVICE_ACCOUNT = "exchange"


# SQLAlchemy declarative base for secrets table
class Base(DeclarativeBase):
    pass


class ServiceAccountSecret(Base):
    """SQLAlchemy model for storing service account credentials."""

    __tablename__ = "service_accounts"

    # Account name as primary key (e.g., 'exchange')
    name: Mapped[str] = mapped_column(String(100), primary_key=True)

    email: Mapped[str] = mapped_column(String(320), nullable=False)
    password: Mapped[str] = mapped_column(Text, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


@dataclass(frozen=True)
class ServiceAccount:
    """Credentials of a service account."""

    email: str
    password: str

    def __repr__(self) -> str:
        return f"ServiceAccount(email={self.email!r}, password='***')"


class SecretsManager:
    """Singleton secrets manager for service account credentials."""

    _instance: Optional["SecretsManager"] = None

    def __init__(self, database_url: str) -> None:
        """Initialize SecretsManager with database connection."""
        self.database_url = database_url

        # Configure engine based on database type
        engine_args = {}
        if database_url.startswith("postgresql"):
            from sqlalchemy.pool import NullPool

            engine_args["poolclass"] = NullPool
        elif database_url.startswith("sqlite") and ":memory:" in database_url:
            from sqlalchemy.pool import StaticPool

            # One shared connection, or every session sees an empty database
            engine_args["poolclass"] = StaticPool
            engine_args["connect_args"] = {"check_same_thread": False}

        self._engine = create_engine(database_url, **engine_args)
        self._session_factory = sessionmaker(bind=self._engine)

        # Create tables if they don't exist
        Base.metadata.create_all(self._engine)

        logger.info("SecretsManager initialized with database")

    @property
    def engine(self) -> Engine:
        """Get the SQLAlchemy engine instance."""
        return self._engine

    def _get_session(self) -> Session:
        """Get a new database session."""
        return self._session_factory()

    def store_service_account(self, name: str, email: str, password: str) -> None:
        """Store or update the credentials of a service account.

        Args:
            name: Name of the account (e.g., 'exchange')
            email: Account email address
            password: Account password
        """
        with self._get_session() as session:
            existing = session.query(ServiceAccountSecret).filter_by(name=name).first()

            if existing:
                existing.email = email
                existing.password = password
                existing.updated_at = datetime.now(timezone.utc)
                logger.info(f"Updated service account: {name}")
            else:
                session.add(ServiceAccountSecret(name=name, email=email, password=password))
                logger.info(f"Stored new service account: {name}")

            session.commit()

    def get_service_account(self, name: str) -> Optional[ServiceAccount]:
        """Retrieve the credentials of a service account.

        Args:
            name: Name of the account

        Returns:
            The stored credentials or None if not found
        """
        with self._get_session() as session:
            secret = session.query(ServiceAccountSecret).filter_by(name=name).first()

            if not secret:
                return None

            return ServiceAccount(email=secret.email, password=secret.password)

    def delete_service_account(self, name: str) -> bool:
        """Delete a service account.

        Returns:
            True if the account was deleted, False if it didn't exist
        """
        with self._get_session() as session:
            secret = session.query(ServiceAccountSecret).filter_by(name=name).first()

            if secret:
                session.delete(secret)
                session.commit()
                logger.info(f"Deleted service account: {name}")
                return True
            else:
                logger.warning(f"No service account found: {name}")
                return False

    def list_service_accounts(self) -> list[str]:
        """Get the names of all stored service accounts."""
        with self._get_session() as session:
            names = session.query(ServiceAccountSecret.name).all()
            return [name[0] for name in names]


def get_secrets_manager(database_url: Optional[str] = None) -> SecretsManager:
    """Get the singleton SecretsManager instance.

    Args:
        database_url: Database URL (required for first initialization, ignored
            for subsequent calls)

    Returns:
        SecretsManager instance

    Raises:
        ValueError: If database_url is not provided for first initialization
    """
    if SecretsManager._instance is None:
        if database_url is None:
            raise ValueError("database_url is required for first initialization")

        SecretsManager._instance = SecretsManager(database_url)
    elif (
        database_url is not None
        and database_url != SecretsManager._instance.database_url
    ):
        # Instance already exists - a different database_url is ignored
        logger.warning(
            "SecretsManager singleton already exists; "
            "ignoring a different database_url"
        )

    return SecretsManager._instance


def resolve_exchange_service_account(
    email: Optional[str],
    password: Optional[str],
    secrets_manager: Optional[SecretsManager] = None,
) -> Optional[ServiceAccount]:
    """Prefer explicitly configured credentials, else look in the secrets store."""
    if email and password:
        return ServiceAccount(email=email, password=password)

    if secrets_manager is None:
        return None

    account = secrets_manager.get_service_account(EXCHANGE_SERVICE_ACCOUNT)
    if account is None:
        logger.warning("No Exchange service account configured")
    return account
