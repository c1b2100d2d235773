"""
Tests for database models.
"""

import pytest
import tempfile
import os

from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError

from rlscat.models import RlsPolicy, Command, Permissive, Base
from rlscat.models.database import (
    create_db_engine,
    create_session_factory,
    create_async_db_engine,
    create_tables,
    get_async_database_url,
    get_database_url,
    is_postgres_url,
)
from rlscat.config import DatabaseConfig


@pytest.fixture
def db_session():
    """Create a temporary database session for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = os.path.join(tmpdir, "test.db")
        config = DatabaseConfig(url=f"sqlite:///{db_path}")
        engine = create_db_engine(config)
        Base.metadata.create_all(engine)
        Session = create_session_factory(engine)
        session = Session()
        try:
            yield session
        finally:
            session.close()
            engine.dispose()


class TestRlsPolicy:
    """Tests for RlsPolicy model."""

    def test_create_policy(self, db_session):
        """Test storing and reading a policy row."""
        policy = RlsPolicy(
            table_name="profiles",
            policy_name="profiles_select_own",
            command=Command.SELECT,
            roles='["public"]',
            using_expression="(auth.uid() = id)",
        )
        db_session.add(policy)
        db_session.commit()

        retrieved = db_session.query(RlsPolicy).filter_by(policy_name="profiles_select_own").first()
        assert retrieved is not None
        assert retrieved.permissive == Permissive.PERMISSIVE
        assert retrieved.command == Command.SELECT
        assert retrieved.role_list == ["public"]
        assert retrieved.check_expression is None
        assert retrieved.updated_at is not None

    def test_unique_per_table(self, db_session):
        """The same policy name cannot appear twice on one table."""
        db_session.add(RlsPolicy(table_name="t", policy_name="p", command=Command.ALL))
        db_session.commit()

        db_session.add(RlsPolicy(table_name="t", policy_name="p", command=Command.SELECT))
        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_same_name_on_other_table(self, db_session):
        """Policy names only need to be unique per table."""
        db_session.add_all([
            RlsPolicy(table_name="a", policy_name="p", command=Command.ALL),
            RlsPolicy(table_name="b", policy_name="p", command=Command.ALL),
        ])
        db_session.commit()

        assert db_session.query(RlsPolicy).filter_by(policy_name="p").count() == 2


class TestCommand:
    """Tests for the Command enum."""

    def test_expression_rules(self):
        assert not Command.INSERT.allows_using
        assert Command.INSERT.allows_check
        assert Command.SELECT.allows_using
        assert not Command.SELECT.allows_check
        assert not Command.DELETE.allows_check
        assert Command.UPDATE.allows_check
        assert Command.ALL.allows_check


class TestDatabaseUrls:
    """Tests for sync/async URL conversion."""

    def test_sync_url(self):
        assert get_database_url(DatabaseConfig(url="sqlite+aiosqlite:///./x.db")) == "sqlite:///./x.db"
        assert get_database_url(DatabaseConfig(url="postgresql+asyncpg://u@h/db")) == "postgresql://u@h/db"
        assert get_database_url(DatabaseConfig(url="sqlite:///./x.db")) == "sqlite:///./x.db"

    def test_async_url(self):
        assert get_async_database_url(DatabaseConfig(url="sqlite:///./x.db")) == "sqlite+aiosqlite:///./x.db"
        assert get_async_database_url(DatabaseConfig(url="postgresql://u@h/db")) == "postgresql+asyncpg://u@h/db"
        assert get_async_database_url(DatabaseConfig(url="postgresql+asyncpg://u@h/db")) == "postgresql+asyncpg://u@h/db"

    def test_postgres_alias(self):
        assert get_database_url(DatabaseConfig(url="postgres://u@h/db")) == "postgresql://u@h/db"
        assert get_async_database_url(DatabaseConfig(url="postgres://u@h/db")) == "postgresql+asyncpg://u@h/db"

    def test_is_postgres_url(self):
        assert is_postgres_url(DatabaseConfig(url="postgres://u@h/db"))
        assert is_postgres_url(DatabaseConfig(url="postgresql://u@h/db"))
        assert is_postgres_url(DatabaseConfig(url="postgresql+asyncpg://u@h/db"))
        assert not is_postgres_url(DatabaseConfig(url="sqlite:///./x.db"))


class TestCreateTables:
    """Tests for async table creation."""

    @pytest.mark.asyncio
    async def test_create_tables(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = DatabaseConfig(url=f"sqlite:///{os.path.join(tmpdir, 'test.db')}")
            engine = create_async_db_engine(config)
            try:
                await create_tables(engine)
                # second call leaves existing tables alone
                await create_tables(engine)

                async with engine.connect() as conn:
                    tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
                assert "rls_policies" in tables
            finally:
                await engine.dispose()
