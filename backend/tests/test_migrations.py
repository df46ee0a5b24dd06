from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import Text, create_engine, inspect

from servicedesk.settings import settings

pytestmark = pytest.mark.migrations

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"


def test_alembic_has_single_head():
    script_directory = ScriptDirectory.from_config(Config(str(ALEMBIC_INI)))

    heads = script_directory.get_heads()

    assert len(heads) == 1, f"Expected 1 Alembic head, found {heads}"


def test_alembic_upgrade_and_downgrade(tmp_path):
    db_path = tmp_path / "migrations.db"
    config = Config(str(ALEMBIC_INI))
    original_database_url = settings.database_url
    try:
        settings.database_url = f"sqlite+aiosqlite:///{db_path}"
        command.upgrade(config, "head")

        engine = create_engine(f"sqlite:///{db_path}")
        inspector = inspect(engine)
        tables = set(inspector.get_table_names())
        assert {"users", "brands", "bookings", "booking_updates", "email_logs", "activity_logs"} <= tables

        booking_columns = {col["name"] for col in inspector.get_columns("bookings")}
        assert {"short_code", "reschedule_count", "last_reschedule_email_at"} <= booking_columns
        email_indexes = {index["name"] for index in inspector.get_indexes("email_logs")}
        assert "ix_email_logs_message_id" in email_indexes
        email_column_types = {col["name"]: col["type"] for col in inspector.get_columns("email_logs")}
        assert isinstance(email_column_types["subject"], Text)
        assert isinstance(email_column_types["to_address"], Text)
        engine.dispose()

        command.downgrade(config, "base")
        engine = create_engine(f"sqlite:///{db_path}")
        assert "bookings" not in inspect(engine).get_table_names()
        engine.dispose()
    finally:
        settings.database_url = original_database_url
