"""Unit tests for the SQLAlchemy-backed handle with mocked connections.
"""
import pytest
from sqlscan import DatabaseOptions
from sqlscan.connection import ConnectionWrapper, create_url_from_options
from sqlscan.connection import dispose_all_engines, get_engine_for_options
from sqlscan.exceptions import NotFound


@pytest.fixture
def pg_options():
    return DatabaseOptions(hostname='db', username='u', password='p', database='app',
                           port=5432, appname='tests', timeout=5)


@pytest.fixture
def mock_sa_connection(mocker):
    """SQLAlchemy connection over a psycopg-style (pyformat) driver."""
    sa_connection = mocker.MagicMock()
    sa_connection.closed = False
    sa_connection.dialect.name = 'postgresql'
    sa_connection.dialect.loaded_dbapi.paramstyle = 'pyformat'
    cursor = sa_connection.connection.cursor.return_value
    cursor.rowcount = 1
    cursor.lastrowid = None
    return sa_connection


def test_postgres_url(pg_options):
    url = create_url_from_options(pg_options)
    assert url.drivername == 'postgresql+psycopg'
    assert url.host == 'db'
    assert url.port == 5432
    assert url.query['application_name'] == 'tests'
    assert url.query['connect_timeout'] == '5'


def test_sqlite_url():
    url = create_url_from_options(DatabaseOptions(drivername='sqlite', database=':memory:'))
    assert url.drivername == 'sqlite'
    assert url.database == ':memory:'


def test_engine_registry_reuses_engines(mocker, pg_options):
    dispose_all_engines()
    factory = mocker.MagicMock()
    first = get_engine_for_options(pg_options, engine_factory=factory)
    second = get_engine_for_options(pg_options, engine_factory=factory)
    assert first is second
    factory.assert_called_once()
    dispose_all_engines()
    first.dispose.assert_called_once()


def test_exec_translates_numbered_placeholders(mock_sa_connection, pg_options):
    cn = ConnectionWrapper(mock_sa_connection, pg_options)
    result = cn.exec('UPDATE "users" SET "name"=$1 WHERE "id"=$2', 'b', 5)
    cursor = mock_sa_connection.connection.cursor.return_value
    cursor.execute.assert_called_once_with('UPDATE "users" SET "name"=%s WHERE "id"=%s', ('b', 5))
    cursor.close.assert_called_once()
    mock_sa_connection.connection.commit.assert_called_once()
    assert result.rowcount == 1
    assert cn.calls == 1


def test_exec_without_args_passes_no_params(mock_sa_connection, pg_options):
    cn = ConnectionWrapper(mock_sa_connection, pg_options)
    cn.exec("DELETE FROM users WHERE name LIKE 'a%'")
    cursor = mock_sa_connection.connection.cursor.return_value
    cursor.execute.assert_called_once_with("DELETE FROM users WHERE name LIKE 'a%'")


def test_failed_statement_rolls_back(mock_sa_connection, pg_options):
    cursor = mock_sa_connection.connection.cursor.return_value
    cursor.execute.side_effect = RuntimeError('boom')
    cn = ConnectionWrapper(mock_sa_connection, pg_options)
    with pytest.raises(RuntimeError):
        cn.exec('DELETE FROM users WHERE id = $1', 1)
    mock_sa_connection.connection.rollback.assert_called_once()
    mock_sa_connection.connection.commit.assert_not_called()
    cursor.close.assert_called_once()


def test_query_row(mock_sa_connection, pg_options):
    cursor = mock_sa_connection.connection.cursor.return_value
    cursor.fetchone.return_value = (42,)
    cn = ConnectionWrapper(mock_sa_connection, pg_options)
    assert cn.query_row('INSERT INTO "users" ("name") VALUES ($1) RETURNING "id"', 'a').scan() == (42,)


def test_query_row_without_row(mock_sa_connection, pg_options):
    cursor = mock_sa_connection.connection.cursor.return_value
    cursor.fetchone.return_value = None
    cn = ConnectionWrapper(mock_sa_connection, pg_options)
    with pytest.raises(NotFound):
        cn.query_row('SELECT 1 WHERE false').scan()


def test_no_commit_inside_transaction(mock_sa_connection, pg_options):
    cn = ConnectionWrapper(mock_sa_connection, pg_options)
    with cn.transaction() as tx:
        tx.exec('DELETE FROM users WHERE id = $1', 1)
        mock_sa_connection.connection.commit.assert_not_called()
    mock_sa_connection.connection.commit.assert_called_once()
    assert not cn.in_transaction


def test_transaction_rolls_back_on_error(mock_sa_connection, pg_options):
    cn = ConnectionWrapper(mock_sa_connection, pg_options)
    with pytest.raises(ValueError), cn.transaction():
        raise ValueError('abort')
    mock_sa_connection.connection.rollback.assert_called_once()
    mock_sa_connection.connection.commit.assert_not_called()


def test_nested_transactions_rejected(mock_sa_connection, pg_options):
    cn = ConnectionWrapper(mock_sa_connection, pg_options)
    with cn.transaction(), pytest.raises(RuntimeError, match='Nested'):
        cn.transaction()


def test_context_manager_closes(mock_sa_connection, pg_options):
    with ConnectionWrapper(mock_sa_connection, pg_options) as cn:
        assert cn.dialect.placeholder == 'numbered'
    mock_sa_connection.close.assert_called_once()
