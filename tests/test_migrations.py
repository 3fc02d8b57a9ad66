from itertools import count

import pytest

from nexadb.errors import ConfigurationError, QueryError
from nexadb.migrations import Migration, MigrationManager
from nexadb.seeders import Seeder, SeedRunner


class CreateFlightsTable(Migration):
    async def up(self, schema):
        def flights(table):
            table.id()
            table.string("code").unique()

        await schema.create("flights", flights)

    async def down(self, schema):
        await schema.drop_if_exists("flights")


class CreateAirportsTable(Migration):
    async def up(self, schema):
        def airports(table):
            table.id()
            table.string("name")

        await schema.create("airports", airports)

    async def down(self, schema):
        await schema.drop_if_exists("airports")


class BrokenMigration(Migration):
    async def up(self, schema):
        await schema.connection.query("CREATE TABLE nope (")

    async def down(self, schema):
        pass


@pytest.fixture
def migrations(db):
    manager = MigrationManager(db)
    manager.register("2024_01_02_000000_create_airports_table", CreateAirportsTable)
    manager.register("2024_01_01_000000_create_flights_table", CreateFlightsTable)
    return manager


@pytest.mark.asyncio
async def test_migrate_runs_pending_in_name_order(db, migrations):
    executed = await migrations.migrate()

    assert executed == [
        "2024_01_01_000000_create_flights_table",
        "2024_01_02_000000_create_airports_table",
    ]
    assert await db.schema().has_table("flights")
    assert await db.schema().has_table("airports")
    assert await migrations.migrate() == []


@pytest.mark.asyncio
async def test_status_reports_batches(migrations):
    assert [row["ran"] for row in await migrations.status()] == [False, False]

    await migrations.migrate()

    assert await migrations.status() == [
        {"migration": "2024_01_01_000000_create_flights_table", "ran": True, "batch": 1},
        {"migration": "2024_01_02_000000_create_airports_table", "ran": True, "batch": 1},
    ]


@pytest.mark.asyncio
async def test_rollback_reverses_last_batch(db):
    manager = MigrationManager(db)
    manager.register("2024_01_01_000000_create_flights_table", CreateFlightsTable)
    await manager.migrate()

    manager.register("2024_01_02_000000_create_airports_table", CreateAirportsTable)
    await manager.migrate()
    assert await manager.get_last_batch() == 2

    assert await manager.rollback() == ["2024_01_02_000000_create_airports_table"]
    assert not await db.schema().has_table("airports")
    assert await db.schema().has_table("flights")

    assert await manager.rollback() == ["2024_01_01_000000_create_flights_table"]
    assert await manager.rollback() == []


@pytest.mark.asyncio
async def test_reset_and_refresh(db, migrations):
    await migrations.migrate()

    rolled_back, executed = await migrations.refresh()

    assert rolled_back == [
        "2024_01_02_000000_create_airports_table",
        "2024_01_01_000000_create_flights_table",
    ]
    assert executed == sorted(rolled_back)

    assert len(await migrations.reset()) == 2
    assert await migrations.get_ran_migrations() == []


@pytest.mark.asyncio
async def test_rollback_skips_unregistered_rows(db, migrations):
    await migrations.migrate()
    await db.table("migrations").insert({"migration": "2023_legacy", "batch": 1})

    rolled_back = await migrations.rollback()

    assert "2023_legacy" not in rolled_back
    assert await migrations.get_ran_migrations() == ["2023_legacy"]


@pytest.mark.asyncio
async def test_failed_migration_is_not_recorded(db, migrations):
    migrations.register("2024_01_03_000000_broken", BrokenMigration)

    with pytest.raises(QueryError):
        await migrations.migrate()

    assert "2024_01_03_000000_broken" not in await migrations.get_ran_migrations()


flight_numbers = count(1)


class FlightSeeder(Seeder):
    async def run(self, db):
        await db.table("flights").insert([{"code": f"NX{next(flight_numbers)}"} for _ in range(2)])


class DatabaseSeeder(Seeder):
    async def run(self, db):
        await self.call(FlightSeeder)


@pytest.mark.asyncio
async def test_seed_runner(db, migrations):
    await migrations.migrate()
    runner = SeedRunner(db)
    runner.register(DatabaseSeeder)
    runner.register(FlightSeeder)

    await runner.run()
    assert await db.table("flights").count() == 2

    await runner.run("FlightSeeder")
    assert await db.table("flights").count() == 4

    with pytest.raises(ConfigurationError):
        await runner.run("MissingSeeder")


@pytest.mark.asyncio
async def test_seeder_call_needs_a_database():
    with pytest.raises(ConfigurationError):
        await DatabaseSeeder().call(FlightSeeder)
