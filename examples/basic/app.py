import asyncio

from nestor import DriverManager, UniqueConstraintViolationException


async def add_city(connection, city_id: int, name: str):
    await connection.execute_statement(
        "INSERT INTO city (id, name) VALUES (?, ?)", (city_id, name)
    )


async def add_cities(connection):
    await add_city(connection, 1, "Kabul")
    try:
        async with connection.transaction():
            await add_city(connection, 2, "Qandahar")
            await add_city(connection, 1, "Herat")
    except UniqueConstraintViolationException as e:
        print(f"Skipped a batch: {e}")
    await add_city(connection, 3, "Mazar-e-Sharif")


async def run():
    connection = DriverManager.get_connection(
        db_path="world.sqlite", nest_transactions_with_savepoints=True
    )
    async with connection:
        await connection.execute_statement(
            "CREATE TABLE IF NOT EXISTS city "
            "(id INTEGER PRIMARY KEY, name TEXT)"
        )
        await connection.transactional(add_cities)
        print(await connection.fetch_one("SELECT COUNT(*) FROM city"))


asyncio.run(run())
