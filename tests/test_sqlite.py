import sqlite3

import pytest

from nestor import DriverManager
from nestor.exception import (
    ConnectionException,
    ErrorKind,
    UniqueConstraintViolationException,
)

TABLE = "connection_test"


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "test_nesting.sqlite")


@pytest.fixture
async def sqlite_connection(db_path):
    connection = DriverManager.get_connection(db_path=db_path)
    await connection.execute_statement(
        f"CREATE TABLE {TABLE} (id INTEGER PRIMARY KEY)"
    )
    await connection.execute_statement(f"INSERT INTO {TABLE} (id) VALUES (1)")
    yield connection
    await connection.close()


async def insert(connection, id_):
    await connection.execute_statement(
        f"INSERT INTO {TABLE} (id) VALUES (?)", (id_,)
    )


async def count(connection):
    return await connection.fetch_one(f"SELECT COUNT(*) FROM {TABLE}")


async def test_unique_constraint_violation(sqlite_connection):
    with pytest.raises(UniqueConstraintViolationException) as exc_info:
        await insert(sqlite_connection, 1)

    assert isinstance(exc_info.value.__cause__, sqlite3.IntegrityError)
    assert exc_info.value.kind is ErrorKind.DRIVER_ERROR


async def test_transaction_nesting_behavior(sqlite_connection):
    connection = sqlite_connection

    await connection.begin_transaction()
    await connection.begin_transaction()
    with pytest.raises(UniqueConstraintViolationException):
        await insert(connection, 1)
    await connection.roll_back()
    assert connection.get_transaction_nesting_level() == 1
    assert connection.is_rollback_only()

    with pytest.raises(ConnectionException):
        await connection.commit()
    assert connection.get_transaction_nesting_level() == 1
    await connection.roll_back()
    assert connection.get_transaction_nesting_level() == 0

    await connection.begin_transaction()
    await connection.close()
    await connection.begin_transaction()
    assert connection.get_transaction_nesting_level() == 1


async def test_transaction_nesting_behavior_with_savepoints(
    sqlite_connection,
):
    connection = sqlite_connection
    connection.set_nest_transactions_with_savepoints(True)

    await connection.begin_transaction()
    await insert(connection, 2)
    await connection.begin_transaction()
    await insert(connection, 3)
    await connection.begin_transaction()
    await connection.commit()
    with pytest.raises(UniqueConstraintViolationException):
        await insert(connection, 1)
    await connection.roll_back()

    assert connection.get_transaction_nesting_level() == 1
    assert not connection.is_rollback_only()

    await connection.commit()

    assert connection.get_transaction_nesting_level() == 0
    assert await count(connection) == 2


async def test_transaction_nesting_level_is_reset_on_reconnect(db_path):
    connection = DriverManager.get_connection(db_path=db_path)
    await connection.execute_statement(
        "CREATE TABLE test_nesting(test int not null)"
    )

    await connection.begin_transaction()
    await connection.begin_transaction()
    await connection.close()

    await connection.begin_transaction()
    await connection.execute_statement("INSERT INTO test_nesting VALUES (33)")
    await connection.roll_back()

    assert await connection.fetch_one("SELECT COUNT(*) FROM test_nesting") == 0
    await connection.close()


async def test_abandoned_transaction_is_not_committed(sqlite_connection):
    await sqlite_connection.begin_transaction()
    await insert(sqlite_connection, 2)
    await sqlite_connection.close()

    assert await count(sqlite_connection) == 1


async def test_transactional(sqlite_connection, db_path):
    result = await sqlite_connection.transactional(
        lambda conn: insert(conn, 2)
    )

    assert result is None
    assert sqlite_connection.get_transaction_nesting_level() == 0

    other = DriverManager.get_connection(db_path=db_path)
    async with other:
        assert await count(other) == 2


async def test_transactional_with_exception(sqlite_connection):
    async def unit(conn):
        await insert(conn, 2)
        await insert(conn, 1)

    with pytest.raises(UniqueConstraintViolationException):
        await sqlite_connection.transactional(unit)

    assert sqlite_connection.get_transaction_nesting_level() == 0
    assert await count(sqlite_connection) == 1


async def test_transactional_return_value(sqlite_connection):
    assert await sqlite_connection.transactional(lambda conn: 42) == 42


async def test_connect_and_close(db_path):
    connection = DriverManager.get_connection(db_path=db_path)
    assert not connection.is_connected()

    await connection.connect()
    assert connection.is_connected()

    await connection.close()
    assert not connection.is_connected()


async def test_server_version(sqlite_connection):
    assert await sqlite_connection.get_server_version() == (
        sqlite3.sqlite_version
    )


async def test_connection_from_dsn(db_path, sqlite_connection):
    await sqlite_connection.close()
    connection = DriverManager.get_connection(dsn=f"sqlite:///{db_path}")

    async with connection:
        assert connection.driver.db_path == db_path
        assert await count(connection) == 1

    assert connection.get_params() == {
        "dsn": f"sqlite:///{db_path}",
        "persistent": False,
    }
