"""
Alembic migrations against the ORM models
"""

from pathlib import Path
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect
from core.config import settings
from models import Base

ROOT = Path(__file__).resolve().parents[2]


def alembic_config(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'migrations.db'}")
    config = Config(str(ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(ROOT / "alembic"))
    return config


def test_upgrade_builds_the_model_schema(tmp_path, monkeypatch):
    command.upgrade(alembic_config(tmp_path, monkeypatch), "head")

    engine = create_engine(f"sqlite:///{tmp_path / 'migrations.db'}")
    try:
        inspector = inspect(engine)
        assert set(inspector.get_table_names()) == set(Base.metadata.tables) | {"alembic_version"}
        for table in Base.metadata.sorted_tables:
            columns = {c["name"] for c in inspector.get_columns(table.name)}
            indexes = {i["name"] for i in inspector.get_indexes(table.name)}
            assert columns == {c.name for c in table.columns}, table.name
            assert indexes == {i.name for i in table.indexes}, table.name
    finally:
        engine.dispose()


def test_downgrade_drops_everything(tmp_path, monkeypatch):
    config = alembic_config(tmp_path, monkeypatch)
    command.upgrade(config, "head")
    command.downgrade(config, "base")

    engine = create_engine(f"sqlite:///{tmp_path / 'migrations.db'}")
    try:
        assert inspect(engine).get_table_names() == ["alembic_version"]
    finally:
        engine.dispose()
