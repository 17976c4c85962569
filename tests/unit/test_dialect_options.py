"""Unit tests for dialects, the process default and DatabaseOptions.
"""
import pytest
import sqlscan
from sqlscan import DatabaseOptions, Dialect
from sqlscan.dialect import get_available_dialects, get_default_dialect
from sqlscan.dialect import get_dialect, is_supported_dialect, register_dialect


class TestDialect:

    @pytest.mark.parametrize(('name', 'quote', 'placeholder', 'returning'), [
        ('postgresql', '"', 'numbered', True),
        ('sqlite', '"', 'qmark', False),
        ('mysql', '`', 'qmark', False),
    ])
    def test_builtin_dialects(self, name, quote, placeholder, returning):
        dialect = get_dialect(name)
        assert (dialect.quote, dialect.placeholder, dialect.returning) == (quote, placeholder, returning)

    def test_lookup_is_case_insensitive(self):
        assert get_dialect('PostgreSQL') is get_dialect('postgresql')

    def test_dialect_instance_passthrough(self):
        custom = Dialect('custom')
        assert get_dialect(custom) is custom

    def test_unknown_dialect(self):
        assert not is_supported_dialect('oracle')
        with pytest.raises(ValueError, match='Unsupported dialect: oracle'):
            get_dialect('oracle')

    @pytest.mark.parametrize(('index', 'placeholder', 'expected'), [
        (3, 'numbered', '$3'),
        (3, 'qmark', '?'),
        (3, 'format', '%s'),
    ])
    def test_placeholder_for(self, index, placeholder, expected):
        assert Dialect('x', placeholder=placeholder).placeholder_for(index) == expected

    def test_invalid_placeholder_style(self):
        with pytest.raises(ValueError, match='placeholder must be one of'):
            Dialect('x', placeholder='named')

    def test_invalid_quote(self):
        with pytest.raises(ValueError):
            Dialect('x', quote='[]')

    def test_dialects_are_immutable(self):
        with pytest.raises(AttributeError):
            get_dialect('postgresql').quote = '`'

    def test_with_overrides_ignores_none(self):
        pg = get_dialect('postgresql')
        assert pg.with_overrides(quote=None) is pg
        assert pg.with_overrides(returning=False) == Dialect('postgresql', placeholder='numbered')

    def test_register_dialect(self):
        try:
            register_dialect(Dialect('duckdb', placeholder='numbered'))
            assert 'duckdb' in get_available_dialects()
            assert get_dialect('duckdb').placeholder == 'numbered'
        finally:
            from sqlscan.dialect import _DIALECT_REGISTRY
            _DIALECT_REGISTRY.pop('duckdb', None)


class TestProcessDefault:

    def test_default_is_postgresql(self):
        assert get_default_dialect() == get_dialect('postgresql')

    def test_configure_before_use(self):
        configured = sqlscan.configure('sqlite', quote='`')
        assert configured.quote == '`'
        assert configured.placeholder == 'qmark'
        assert get_default_dialect() is configured

    def test_reconfigure_before_use(self):
        sqlscan.configure('sqlite')
        sqlscan.configure('mysql')
        assert get_default_dialect().name == 'mysql'

    def test_configure_after_use_is_rejected(self):
        get_default_dialect()
        with pytest.raises(RuntimeError, match='already in use'):
            sqlscan.configure('sqlite')

    def test_configure_unknown_dialect(self):
        with pytest.raises(ValueError):
            sqlscan.configure('oracle')


class TestDatabaseOptions:

    def test_postgresql_defaults(self):
        options = DatabaseOptions(hostname='db', username='u', password='p', database='app', port=5432)
        assert options.dialect == 'postgresql'
        assert options.sql_dialect() is get_dialect('postgresql')
        assert options.appname

    def test_sqlite(self):
        options = DatabaseOptions(drivername='sqlite', database=':memory:')
        assert options.sql_dialect().placeholder == 'qmark'

    def test_dialect_overrides(self):
        options = DatabaseOptions(drivername='sqlite', database=':memory:',
                                  placeholder='numbered', quote='`')
        dialect = options.sql_dialect()
        assert (dialect.name, dialect.quote, dialect.placeholder) == ('sqlite', '`', 'numbered')

    def test_unknown_driver(self):
        with pytest.raises(ValueError, match='drivername must be one of'):
            DatabaseOptions(drivername='oracle', database='x')

    @pytest.mark.parametrize('missing', ['hostname', 'username', 'password', 'database', 'port'])
    def test_required_postgresql_fields(self, missing):
        kwargs = {'hostname': 'db', 'username': 'u', 'password': 'p', 'database': 'app', 'port': 5432}
        kwargs.pop(missing)
        with pytest.raises(ValueError, match=f'field {missing} cannot be None or 0'):
            DatabaseOptions(**kwargs)

    def test_unsupported_dialect(self):
        with pytest.raises(ValueError, match='Unsupported dialect'):
            DatabaseOptions(drivername='sqlite', database='x', dialect='oracle')

    def test_invalid_placeholder_override(self):
        with pytest.raises(ValueError):
            DatabaseOptions(drivername='sqlite', database='x', placeholder='named')
