from typing import Any
from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from config.setting import settings


class DatabaseSetup:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(DatabaseSetup, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self) -> None:
        """Construct a Database Operator with connection pooling"""
        engine_kwargs = {
            "pool_pre_ping": True,  # Verify connections before use
            "echo": settings.TESTING,
        }

        if settings.DATABASE_URL.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs["pool_recycle"] = 3600
            engine_kwargs["pool_size"] = 10
            engine_kwargs["max_overflow"] = 20

        self._engine = create_engine(settings.DATABASE_URL, **engine_kwargs)

        if settings.DATABASE_URL.startswith("sqlite"):
            # SQLite only honours ON DELETE CASCADE with foreign keys enabled
            @event.listens_for(self._engine, "connect")
            def _enable_foreign_keys(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        self._session_maker = sessionmaker(
            bind=self._engine, autocommit=False, autoflush=False, expire_on_commit=False
        )
        self._base = declarative_base()

    def get_session(self) -> sessionmaker:
        """Grant session

            This method returns the database
            session factory
        Returns:
            object: database session factory
        """
        return self._session_maker

    @property
    def get_base(self) -> Any:
        """Grant Base

            This method returns the
            database Base
        Returns:
            object: database base
        """
        return self._base

    @property
    def get_engine(self) -> Any:
        """Grant engine
            This method returns the
            database engine

        Returns:
            object: database engine
        """
        return self._engine


database = DatabaseSetup()
Base = database.get_base
