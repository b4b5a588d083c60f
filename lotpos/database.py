"""Database configuration and initialization."""
from sqlalchemy import BigInteger, Integer, create_engine
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base

# Create SQLAlchemy base
Base = declarative_base()

# BIGINT keys everywhere except SQLite, where only INTEGER PRIMARY KEY autoincrements
BigIntPK = BigInteger().with_variant(Integer, 'sqlite')

# Global session and engine
engine = None
db_session = None


def _engine_options(database_uri: str, echo: bool, timeout_ms: int) -> dict:
    """Build create_engine() keyword arguments for the given backend."""
    options = {'echo': echo, 'pool_pre_ping': True}

    if database_uri.startswith('sqlite'):
        # Busy timeout: a writer waits at most this long for the database lock
        options['connect_args'] = {'timeout': timeout_ms / 1000, 'check_same_thread': False}
    else:
        options['pool_size'] = 10
        options['max_overflow'] = 20
        if database_uri.startswith('postgresql'):
            options['connect_args'] = {
                'options': f'-c statement_timeout={timeout_ms} -c lock_timeout={timeout_ms}'
            }
    return options


def configure_engine(database_uri: str, echo: bool = False, timeout_ms: int = 5000):
    """Create the global engine and scoped session factory."""
    global engine, db_session

    if db_session is not None:
        db_session.remove()
    if engine is not None:
        engine.dispose()

    engine = create_engine(database_uri, **_engine_options(database_uri, echo, timeout_ms))
    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, bind=engine)
    )
    Base.query = db_session.query_property()
    return db_session


def init_db(app):
    """Initialize database connection."""
    configure_engine(
        app.config['SQLALCHEMY_DATABASE_URI'],
        echo=app.config.get('SQLALCHEMY_ECHO', False),
        timeout_ms=app.config.get('COMMIT_TIMEOUT_MS', 5000),
    )

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_all():
    """Create every table known to the models package."""
    import lotpos.models  # noqa: F401  (registers the mappers)
    Base.metadata.create_all(bind=engine)


def drop_all():
    """Drop every table (test teardown)."""
    Base.metadata.drop_all(bind=engine)


def get_session():
    """Get database session."""
    return db_session
