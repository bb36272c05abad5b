"""
Database session management
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from stockledger.core.config import settings
from stockledger.logging_config import get_logger

logger = get_logger(__name__)


def enable_sqlite_savepoints(engine: Engine) -> Engine:
    """
    Let SQLAlchemy own BEGIN/SAVEPOINT on pysqlite connections.

    pysqlite issues its own implicit BEGIN, which breaks nested transactions
    (``Session.begin_nested``). Receiving and adjustments rely on savepoints.
    """

    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


connection_string = settings.database_url

if connection_string.startswith("sqlite"):
    logger.info("Database connection: SQLite")
    engine = create_engine(connection_string, connect_args={"check_same_thread": False})
    enable_sqlite_savepoints(engine)
else:
    # Log connection info (without password)
    logger.info(f"Database connection: {settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME} (PostgreSQL)")
    engine = create_engine(
        connection_string,
        echo=False,
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=3600,  # Recycle connections after 1 hour
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    Dependency for getting database session

    Usage in FastAPI endpoints:
        @router.get("/inventory/{inventory_id}")
        def get_inventory(inventory_id: int, db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
