import pytest

from app.core.database import ResilientPool, apply_migrations, initialize_database


@pytest.fixture
async def pool(tmp_path):
    pool = ResilientPool(f"sqlite+aiosqlite:///{tmp_path / 'migrations.db'}", max_connections=2, base_delay=0)
    yield pool
    await pool.dispose()


def write(directory, name, sql):
    (directory / name).write_text(sql, encoding="utf-8")


async def test_each_migration_runs_at_most_once(pool, tmp_path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    write(migrations, "001_widgets.sql", "CREATE TABLE widgets (id INTEGER PRIMARY KEY, name TEXT);")
    write(migrations, "002_seed.sql", "INSERT INTO widgets (name) VALUES ('first');")

    first = await apply_migrations(pool, str(migrations))
    second = await apply_migrations(pool, str(migrations))

    assert first == ["001_widgets.sql", "002_seed.sql"]
    assert second == []
    assert (await pool.query("SELECT COUNT(*) FROM widgets")).scalar() == 1


async def test_failed_migration_is_skipped_and_later_ones_still_run(pool, tmp_path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    write(migrations, "001_broken.sql", "CREATE TABLE broken (;")
    write(migrations, "002_ok.sql", "CREATE TABLE ok_table (id INTEGER);")

    applied = await apply_migrations(pool, str(migrations))

    assert applied == ["002_ok.sql"]
    ledger = await pool.query("SELECT name FROM applied_migrations")
    assert [row["name"] for row in ledger.rows] == ["002_ok.sql"]


async def test_missing_directory_is_not_an_error(pool, tmp_path):
    assert await apply_migrations(pool, str(tmp_path / "absent")) == []


async def test_schema_init_is_opt_in(pool, tmp_path):
    await initialize_database(pool, allow_schema_init=False, migrations_dir=None)
    tables = await pool.query("SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'questions'")
    assert tables.rows == []

    # model tables register on import
    from app.models import image, image_description, question, registration_token, upload_batch, user  # noqa: F401
    await initialize_database(pool, allow_schema_init=True, migrations_dir=None)
    tables = await pool.query("SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'questions'")
    assert len(tables) == 1
