"""
Tests for live queries.

Test Coverage:
    - Lazy activation and registry entry lifecycle
    - Delivery to listeners
    - Idempotent unsubscribe and re-activation
    - update() coalescing and equality no-ops
    - Error propagation from the store
"""

from unittest.mock import MagicMock

import pytest

from observable_sqlite.core.errors import DependencyDeclarationError
from observable_sqlite.core.types import coerce_dependencies
from observable_sqlite.runtime.query import Query


SQL = "SELECT * FROM users"


@pytest.fixture
def query(fake_store, registry):
    fake_store.rows[SQL] = [{"id": 1}]
    return Query(fake_store, registry, SQL, [], {"users": "*"})


class TestActivation:
    """Tests for the inert/observing lifecycle."""

    def test_created_inert(self, query, fake_store, registry):
        """Should not execute or register before the first subscribe."""
        assert fake_store.execution_count == 0
        assert registry.subscription_count == 0
        assert not query.is_observing
        assert query.result is None

    def test_writes_ignore_inert_query(self, query, fake_store, registry):
        """Should do no work on writes while inert."""
        registry.notify({"users": "*"})
        assert fake_store.execution_count == 0

    def test_first_subscribe_executes_once(self, query, fake_store, registry):
        """Should execute exactly once and register on first subscribe."""
        listener = MagicMock()
        query.subscribe(listener)

        assert fake_store.execution_count == 1
        assert registry.subscription_count == 1
        listener.assert_called_once_with([{"id": 1}])
        assert query.is_observing

    def test_second_subscribe_reuses_result(self, query, fake_store, registry):
        """Should deliver the cached result without executing again."""
        first = MagicMock()
        second = MagicMock()
        query.subscribe(first)
        query.subscribe(second)

        assert fake_store.execution_count == 1
        assert registry.subscription_count == 1
        second.assert_called_once_with([{"id": 1}])
        first.assert_called_once()

    def test_last_unsubscribe_tears_down(self, query, registry):
        """Should remove the registry entry when the last listener leaves."""
        unsubscribe_a = query.subscribe(MagicMock())
        unsubscribe_b = query.subscribe(MagicMock())

        unsubscribe_a()
        assert registry.subscription_count == 1
        unsubscribe_b()
        assert registry.subscription_count == 0
        assert not query.is_observing

    def test_unsubscribe_twice(self, query, registry):
        """Should ignore a second unsubscribe call."""
        unsubscribe = query.subscribe(MagicMock())
        other = query.subscribe(MagicMock())

        unsubscribe()
        unsubscribe()
        assert query.listener_count == 1
        assert registry.subscription_count == 1

        other()
        other()
        assert registry.subscription_count == 0
        assert registry.stats.subscriptions == 1

    def test_resubscribe_after_teardown(self, query, fake_store, registry):
        """Should re-execute and re-register when subscribed again."""
        query.subscribe(MagicMock())()
        listener = MagicMock()
        query.subscribe(listener)

        assert fake_store.execution_count == 2
        assert registry.subscription_count == 1
        listener.assert_called_once()

    def test_same_listener_twice(self, query):
        """Should treat each subscription of the same function separately."""
        listener = MagicMock()
        unsubscribe_a = query.subscribe(listener)
        query.subscribe(listener)
        assert query.listener_count == 2

        unsubscribe_a()
        assert query.listener_count == 1
        assert query.is_observing

    def test_dispose(self, query, registry):
        """Should drop every listener and tear down."""
        query.subscribe(MagicMock())
        query.subscribe(MagicMock())
        query.dispose()
        assert query.listener_count == 0
        assert registry.subscription_count == 0


class TestRefresh:
    """Tests for registry-driven re-execution."""

    def test_refresh_delivers_to_all_listeners(self, query, fake_store, registry):
        """Should re-execute and push new rows to listeners in order."""
        received = []
        query.subscribe(lambda rows: received.append(("a", len(rows))))
        query.subscribe(lambda rows: received.append(("b", len(rows))))
        received.clear()

        fake_store.rows[SQL] = [{"id": 1}, {"id": 2}]
        registry.notify({"users": [2]})

        assert received == [("a", 2), ("b", 2)]
        assert query.result == [{"id": 1}, {"id": 2}]
        assert query.execution_count == 2

    def test_unsubscribed_listener_not_called(self, query, registry):
        """Should not deliver to a listener after it unsubscribed."""
        gone = MagicMock()
        unsubscribe = query.subscribe(gone)
        query.subscribe(MagicMock())
        unsubscribe()
        gone.reset_mock()

        registry.notify({"users": "*"})
        gone.assert_not_called()

    def test_unsubscribe_during_delivery(self, query, registry):
        """Should not deliver to a listener removed earlier in the same delivery."""
        handles = {}
        second = MagicMock()

        def first(rows):
            if "second" in handles:
                handles["second"]()

        query.subscribe(first)
        handles["second"] = query.subscribe(second)
        second.reset_mock()

        registry.notify({"users": "*"})

        second.assert_not_called()
        assert query.listener_count == 1

    def test_dispose_during_delivery(self, query, registry):
        """Should stop delivering once a listener disposes the query."""
        later = MagicMock()
        armed = []

        def first(rows):
            if armed:
                query.dispose()

        query.subscribe(first)
        query.subscribe(later)
        later.reset_mock()
        armed.append(True)

        registry.notify({"users": "*"})

        later.assert_not_called()
        assert registry.subscription_count == 0

    def test_update_from_listener_delivers_latest(self, query, fake_store):
        """Should leave every listener with the newest rows after a nested update."""
        new_sql = "SELECT * FROM users WHERE id = 2"
        fake_store.rows[new_sql] = [{"id": 2}]
        seen_by_second = []
        armed = []

        def first(rows):
            if armed:
                armed.clear()
                query.update(sql=new_sql)

        query.subscribe(MagicMock())
        query.subscribe(first)
        query.subscribe(seen_by_second.append)
        seen_by_second.clear()
        armed.append(True)

        query.update(parameters=[1])

        assert query.result == [{"id": 2}]
        assert seen_by_second == [[{"id": 2}]]

    def test_enumerated_dependencies(self, fake_store, registry):
        """Should refresh only the query whose ids were changed."""
        first = Query(fake_store, registry, "SELECT 1", [], {"users": {1}})
        second = Query(fake_store, registry, "SELECT 2", [], {"users": {2}})
        first_listener = MagicMock()
        second_listener = MagicMock()
        first.subscribe(first_listener)
        second.subscribe(second_listener)

        registry.notify({"users": [1]})

        assert first_listener.call_count == 2
        assert second_listener.call_count == 1

    def test_refresh_error_keeps_cached_result(self, query, fake_store, registry):
        """Should propagate a refresh error and keep the previous result."""
        listener = MagicMock()
        query.subscribe(listener)

        fake_store.fail_with = RuntimeError("disk I/O error")
        with pytest.raises(RuntimeError):
            registry.notify({"users": "*"})

        assert query.result == [{"id": 1}]
        listener.assert_called_once()


class TestFirstExecutionError:
    """Tests for failures on the first subscribe."""

    def test_error_leaves_query_inert(self, query, fake_store, registry):
        """Should propagate and neither add the listener nor register."""
        fake_store.fail_with = RuntimeError("no such table")
        listener = MagicMock()

        with pytest.raises(RuntimeError):
            query.subscribe(listener)

        listener.assert_not_called()
        assert not query.is_observing
        assert registry.subscription_count == 0

        fake_store.fail_with = None
        query.subscribe(listener)
        listener.assert_called_once_with([{"id": 1}])

    def test_listener_error_on_first_delivery(self, query, registry):
        """Should drop a listener that raises on its first delivery."""
        with pytest.raises(ValueError):
            query.subscribe(MagicMock(side_effect=ValueError("bad listener")))

        assert query.listener_count == 0
        assert not query.is_observing
        assert registry.subscription_count == 0

    def test_listener_error_keeps_other_listeners(self, query, registry):
        """Should keep existing listeners when a new one raises."""
        query.subscribe(MagicMock())
        with pytest.raises(ValueError):
            query.subscribe(MagicMock(side_effect=ValueError("bad listener")))

        assert query.listener_count == 1
        assert registry.subscription_count == 1


class TestUpdate:
    """Tests for Query.update."""

    def test_sql_and_parameters_execute_once(self, query, fake_store):
        """Should execute once when several fields change together."""
        query.subscribe(MagicMock())
        before = fake_store.execution_count

        changed = query.update(sql="SELECT * FROM users WHERE id = ?", parameters=[2])

        assert changed is True
        assert fake_store.execution_count == before + 1

    def test_new_sql_is_prepared(self, query, fake_store):
        """Should prepare the new SQL text, bound with the current parameters."""
        query.subscribe(MagicMock())
        new_sql = "SELECT * FROM users WHERE id = ?"

        query.update(sql=new_sql, parameters=[2])

        statement = fake_store.prepared[-1]
        assert statement.sql == new_sql
        assert statement.bound[-1] == [2]
        assert fake_store.executed_sql[-1] == new_sql
        assert query.sql == new_sql

    def test_sql_change_rebinds_existing_parameters(self, fake_store, registry):
        """Should bind unchanged parameters to a re-prepared statement."""
        query = Query(fake_store, registry, "SELECT ?", [5])
        query.update(sql="SELECT ? + 1")
        assert fake_store.prepared[-1].bound == [[5]]

    def test_parameters_rebind(self, query, fake_store):
        """Should re-bind the existing statement when parameters change."""
        query.subscribe(MagicMock())
        statement = fake_store.prepared[-1]

        query.update(parameters=[3])

        assert len(fake_store.prepared) == 1
        assert statement.bound[-1] == [3]
        assert query.parameters == [3]

    def test_equal_parameters_no_execution(self, fake_store, registry):
        """Should not execute when parameters are structurally equal."""
        query = Query(fake_store, registry, SQL, [1, "a"], {"users": "*"})
        query.subscribe(MagicMock())
        before = fake_store.execution_count

        assert query.update(parameters=[1, "a"]) is False
        assert query.update(sql=SQL, dependencies={"users": "*"}) is False
        assert fake_store.execution_count == before

    def test_empty_parameters_is_a_value(self, fake_store, registry):
        """Should treat [] as a supplied value distinct from [1]."""
        query = Query(fake_store, registry, SQL, [1])
        assert query.update(parameters=[]) is True
        assert query.parameters == []

    def test_inert_update_does_not_execute(self, query, fake_store, registry):
        """Should not execute or register when updated while inert."""
        assert query.update(sql="SELECT 2", parameters=[1], dependencies={"todos": "*"})
        assert fake_store.execution_count == 0
        assert registry.subscription_count == 0

    def test_inert_dependencies_apply_on_subscribe(self, query, fake_store, registry):
        """Should register with dependencies updated while inert."""
        query.update(dependencies={"todos": {1}})
        query.subscribe(MagicMock())
        before = fake_store.execution_count

        registry.notify({"users": "*"})
        assert fake_store.execution_count == before

        registry.notify({"todos": [1]})
        assert fake_store.execution_count == before + 1

    def test_dependencies_update_while_observing(self, query, fake_store, registry):
        """Should move the registry entry to the new dependencies and re-execute."""
        listener = MagicMock()
        query.subscribe(listener)

        query.update(dependencies={"todos": "*"})
        assert listener.call_count == 2
        assert registry.subscription_count == 1
        assert query.dependencies == coerce_dependencies({"todos": "*"})

        registry.notify({"users": "*"})
        assert listener.call_count == 2
        registry.notify({"todos": [4]})
        assert listener.call_count == 3

    def test_failed_prepare_keeps_configuration(self, query, fake_store):
        """Should leave SQL, parameters and statement untouched if prepare fails."""
        query.subscribe(MagicMock())
        statement = fake_store.prepared[-1]
        fake_store.fail_prepare_with = RuntimeError("store is closed")

        with pytest.raises(RuntimeError):
            query.update(sql="SELECT 2", parameters=[9])

        assert query.sql == SQL
        assert query.parameters == []
        assert statement.bound == []

        fake_store.fail_prepare_with = None
        assert query.update(sql="SELECT 2") is True
        assert fake_store.executed_sql[-1] == "SELECT 2"

    def test_empty_sql_is_not_supplied(self, query, fake_store):
        """Should treat an empty SQL string as leaving the SQL unchanged."""
        query.subscribe(MagicMock())
        before = fake_store.execution_count

        assert query.update(sql="") is False
        assert query.sql == SQL
        assert fake_store.execution_count == before

    def test_malformed_dependencies_rejected(self, query):
        """Should reject malformed dependencies without changing anything."""
        with pytest.raises(DependencyDeclarationError):
            query.update(sql="SELECT 3", dependencies={"users": "x"})
        assert query.sql == SQL
