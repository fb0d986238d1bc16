from sqlalchemy.orm import Session
from sqlalchemy.dialects import postgresql, sqlite

def insert_for(db: Session, model):
    """INSERT construct with ON CONFLICT support for the session's backend"""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upsert not supported for dialect {dialect}")
