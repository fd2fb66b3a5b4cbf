from sqlalchemy import create_engine, update
from sqlalchemy.orm import sessionmaker, Session

from app.config import settings

# Create engine with connection pooling
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,  # Verify connections before using them
    pool_size=10,
    max_overflow=20,
)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency for FastAPI routes to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def increment_counter(db: Session, model, row_id, **deltas: int) -> None:
    """
    Atomically add deltas to integer columns of one row.

    Runs as a single UPDATE col = col + n, so concurrent writers never lose increments.
    """
    values = {name: getattr(model, name) + delta for name, delta in deltas.items()}
    db.execute(
        update(model)
        .where(model.id == row_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )


def claim(db: Session, model, row_id, where: dict, values: dict) -> bool:
    """
    Conditionally update one row. Returns True only if this caller won the row.

    `where` lists the column values the row must still have (e.g. status="available").
    """
    stmt = update(model).where(model.id == row_id)
    for column, expected in where.items():
        stmt = stmt.where(getattr(model, column) == expected)
    result = db.execute(stmt.values(**values).execution_options(synchronize_session=False))
    return result.rowcount == 1
