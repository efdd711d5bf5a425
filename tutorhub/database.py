from datetime import datetime, timezone
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from tutorhub.core import config


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(config.DATABASE_URL, connect_args=_connect_args(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_schema_checked = False

# Columns added after the first deployment. Older databases get them on startup.
ADDITIVE_COLUMNS = {
    'tutor_applications': [
        ('feedback', 'ALTER TABLE tutor_applications ADD COLUMN feedback VARCHAR'),
        ('updated_at', 'ALTER TABLE tutor_applications ADD COLUMN updated_at TIMESTAMP'),
    ],
    'study_sessions': [
        ('feedback', 'ALTER TABLE study_sessions ADD COLUMN feedback VARCHAR'),
        ('updated_at', 'ALTER TABLE study_sessions ADD COLUMN updated_at TIMESTAMP'),
    ],
}

INDEX_STATEMENTS = [
    'CREATE INDEX IF NOT EXISTS idx_tutor_applications_email_status ON tutor_applications(email, status)',
    'CREATE INDEX IF NOT EXISTS idx_payments_email_session ON payments(email, session_id)',
]


def ensure_schema(bind=None) -> None:
    global _schema_checked

    if _schema_checked and bind is None:
        return

    with _schema_lock:
        if _schema_checked and bind is None:
            return

        target = bind if bind is not None else engine
        inspector = inspect(target)
        table_names = set(inspector.get_table_names())

        with target.begin() as connection:
            for table_name, migration_steps in ADDITIVE_COLUMNS.items():
                if table_name not in table_names:
                    continue
                existing_columns = {column['name'] for column in inspector.get_columns(table_name)}
                for column_name, statement in migration_steps:
                    if column_name not in existing_columns:
                        connection.execute(text(statement))
            if {'tutor_applications', 'payments'} <= table_names:
                for statement in INDEX_STATEMENTS:
                    connection.execute(text(statement))

        if bind is None:
            _schema_checked = True


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
