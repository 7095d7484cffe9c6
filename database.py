# src/database.py
from typing import Iterable, List, Mapping

from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from config import settings

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def get_db():
    """Yield a database session for a single request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def upsert(db: Session, model, rows: List[Mapping], conflict_columns: Iterable[str]) -> None:
    """Insert rows, updating every non-key column when the conflict key already exists."""
    if not rows:
        return
    dialect = db.get_bind().dialect.name
    insert = _INSERT_BY_DIALECT.get(dialect)
    if insert is None:
        raise NotImplementedError(f"Upsert is not supported for dialect {dialect}")

    conflict_columns = list(conflict_columns)
    stmt = insert(model.__table__).values(list(rows))
    update_columns = {
        name: stmt.excluded[name]
        for name in rows[0].keys()
        if name not in conflict_columns and name != "id"
    }
    stmt = stmt.on_conflict_do_update(index_elements=conflict_columns, set_=update_columns)
    db.execute(stmt)
