import pytest

from coordinator.session.models import Session
from coordinator.session.registry import ConnectionRegistry
from coordinator.tests.mocks import MockConnection


@pytest.fixture
def registry():
    return ConnectionRegistry()


class TestConnectionRegistry:
    def test_register_and_lookup(self, registry):
        conn = MockConnection()
        registry.register(conn)

        assert registry.is_registered(conn.connection_id)
        assert registry.get_session(conn.connection_id) is None
        assert registry.connection_count == 1
        assert registry.bound_count == 0

    def test_bind_resolves_session_by_connection(self, registry):
        conn = MockConnection()
        registry.register(conn)
        session = Session(connection=conn, display_name="Alice")

        registry.bind(conn.connection_id, session)

        assert registry.get_session(conn.connection_id) is session
        assert registry.bound_count == 1

    def test_bind_requires_registration(self, registry):
        conn = MockConnection()

        with pytest.raises(KeyError):
            registry.bind(conn.connection_id, Session(connection=conn, display_name="Alice"))

    def test_double_bind_rejected(self, registry):
        conn = MockConnection()
        registry.register(conn)
        registry.bind(conn.connection_id, Session(connection=conn, display_name="Alice"))

        with pytest.raises(ValueError, match="already bound"):
            registry.bind(conn.connection_id, Session(connection=conn, display_name="Alice"))

    def test_unbind_keeps_connection(self, registry):
        conn = MockConnection()
        registry.register(conn)
        session = Session(connection=conn, display_name="Alice")
        registry.bind(conn.connection_id, session)

        assert registry.unbind(conn.connection_id) is session
        assert registry.unbind(conn.connection_id) is None
        assert registry.get_session(conn.connection_id) is None
        assert registry.is_registered(conn.connection_id)

    def test_unregister_drops_everything(self, registry):
        conn = MockConnection()
        registry.register(conn)
        session = Session(connection=conn, display_name="Alice")
        registry.bind(conn.connection_id, session)

        assert registry.unregister(conn.connection_id) is session
        assert registry.connection_count == 0
        assert registry.bound_count == 0
        assert not registry.is_registered(conn.connection_id)
        assert registry.unregister(conn.connection_id) is None

    def test_connections_returns_snapshot(self, registry):
        first, second = MockConnection(), MockConnection()
        registry.register(first)
        registry.register(second)

        snapshot = registry.connections()
        registry.unregister(first.connection_id)

        assert snapshot == [first, second]
        assert registry.connections() == [second]
