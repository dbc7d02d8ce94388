"""SQLAlchemy models and session handling for the relational arrivals sink."""

from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Type

from sqlalchemy import Column, DateTime, Integer, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .exceptions import ConfigurationError

# Base class for SQLAlchemy models
Base = declarative_base()


class ArrivalColumns:
    id = Column(Integer, primary_key=True, autoincrement=True)
    stop_id = Column(String(16), nullable=False, index=True)
    arrival_time = Column(DateTime, nullable=False)
    destination = Column(String(128), nullable=False, default="")
    route_id = Column(String(16), nullable=False)
    trip_id = Column(String(64), nullable=False)


class Arrival(ArrivalColumns, Base):
    __tablename__ = "arrivals"


class SecondaryArrival(ArrivalColumns, Base):
    __tablename__ = "arrivals_secondary"


# Only these tables may be cleared and rewritten by a flush
ARRIVAL_TABLES: Dict[str, Type[ArrivalColumns]] = {
    Arrival.__tablename__: Arrival,
    SecondaryArrival.__tablename__: SecondaryArrival,
}


def arrival_model(table_name: str) -> Type[ArrivalColumns]:
    """Get the model for an arrivals table, rejecting any other table name."""
    if table_name not in ARRIVAL_TABLES:
        raise ConfigurationError(
            f"Invalid arrivals table {table_name!r}; expected one of {sorted(ARRIVAL_TABLES)}"
        )
    return ARRIVAL_TABLES[table_name]


class ConnectionBroker:
    """Owns an engine and hands out transactional sessions."""

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        if engine is None:
            if not database_url:
                raise ConfigurationError("A database URL or engine is required")
            engine = create_engine(
                database_url,
                pool_pre_ping=True,  # Verify connections before using
                echo=False,  # Set to True for SQL debug logging
            )
        self.engine = engine
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    @contextmanager
    def get_session(self) -> Iterator[Session]:
        """
        Get a SQLAlchemy session with automatic cleanup.

        The session commits when the block exits normally, rolls back if it
        raises, and is closed either way.

        Usage:
            with broker.get_session() as session:
                session.execute(...)
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        """Create all tables defined in models."""
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()
