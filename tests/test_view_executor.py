"""Tests for ViewExecutor: atomic create/select/drop of pivot views."""

import threading

import pytest

from jsondb.exceptions import (
    BuilderStateError,
    EngineError,
    UnknownPathError,
    ViewCleanupError,
    ViewLifecycleError,
)
from jsondb.indexer.database import IndexStore
from jsondb.indexer.scanner import scan
from jsondb.query.builder import BuilderState, ViewBuilder
from jsondb.query.engine import RelationalEngine, SqliteEngine
from jsondb.query.executor import ViewExecutor


class RecordingEngine(RelationalEngine):
    """Delegates to a real engine, recording calls and injecting failures."""

    def __init__(self, inner: SqliteEngine, fail_on=(), transactional: bool = True):
        self.inner = inner
        self.fail_on = set(fail_on)
        self.transactional = transactional
        self.calls = []

    def _step(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise EngineError(f"injected {operation} failure")

    def create_view(self, name, definition_sql):
        self._step("create")
        self.inner.create_view(name, definition_sql)

    def drop_view_if_exists(self, name):
        self._step("drop")
        self.inner.drop_view_if_exists(name)

    def run_query(self, select_sql, params=()):
        self._step("select")
        return self.inner.run_query(select_sql, params)

    def run_in_transaction(self, unit_of_work):
        if self.transactional:
            return self.inner.run_in_transaction(lambda _: unit_of_work(self))
        return unit_of_work(self)

    def view_exists(self, name):
        return self.inner.view_exists(name)

    def list_views(self):
        return self.inner.list_views()


def test_engine_contract_requires_list_views():
    class NoCatalog(RelationalEngine):
        create_view = drop_view_if_exists = run_query = None
        run_in_transaction = view_exists = None

    with pytest.raises(TypeError):
        NoCatalog()


def run(store, engine, configure):
    builder = configure(ViewBuilder(store))
    return ViewExecutor(engine).execute(builder)


class TestQueryResults:
    """Matching document ids for each operator against the sample people."""

    @pytest.mark.parametrize("configure, expected", [
        (lambda b: b.where("age", ">=", 30), ["d1", "d3"]),
        (lambda b: b.where("age", "<", 30), ["d2"]),
        (lambda b: b.where("age", "<>", 30), ["d2", "d3"]),
        (lambda b: b.where("name", "=", "alice").or_where("name", "=", "bob"), ["d1", "d2"]),
        (lambda b: b.where("name", "in", ["alice", "carol"]), ["d1", "d3"]),
        (lambda b: b.where("name", "not-in", ["alice"]), ["d2", "d3"]),
        (lambda b: b.where("active", "=", True), ["d1"]),
        (lambda b: b.where("active", "=", False), ["d2"]),
        (lambda b: b.where("address.city", "=", "Berlin"), ["d2"]),
        (lambda b: b.where("tags.1", "=", "b"), ["d1"]),
        (lambda b: b.where("address", "=", {"city": "Paris"}), ["d1"]),
        (lambda b: b, ["d1", "d2", "d3"]),
    ])
    def test_predicates(self, people_store, engine, configure, expected):
        assert run(people_store, engine, configure) == expected

    def test_between_includes_both_endpoints(self, people_store, engine):
        oids = run(people_store, engine, lambda b: b.where("age", "between", [25, 30]))
        assert oids == ["d1", "d2"]

    def test_not_between_excludes_both_endpoints(self, people_store, engine):
        oids = run(people_store, engine, lambda b: b.where("age", "not-between", [25, 30]))
        assert oids == ["d3"]

    def test_chain_is_left_folded_not_precedence(self, people_store, engine):
        """(age >= 30 OR name = bob) AND active, not age >= 30 OR (name = bob AND active)."""
        oids = run(
            people_store,
            engine,
            lambda b: b.where("age", ">=", 30).or_where("name", "=", "bob").where("active", "=", True),
        )
        assert oids == ["d1"]

    def test_ordering(self, people_store, engine):
        oids = run(people_store, engine, lambda b: b.order_by("age", "descending"))
        assert oids == ["d3", "d1", "d2"]

    def test_missing_path_is_null_column_not_dropped(self, people_store, engine):
        builder = ViewBuilder(people_store).where("address.city", "=", "Paris")
        definition = builder.compile_view_definition()

        rows = engine.run_query(f"SELECT oid, p0 FROM ({definition}) ORDER BY oid")
        assert rows == [("d1", "Paris"), ("d2", "Berlin"), ("d3", None)]


class TestViewLifecycle:
    """No view ever outlives execute()."""

    def test_view_removed_after_success(self, people_store, engine):
        builder = ViewBuilder(people_store).where("age", ">", 1)
        ViewExecutor(engine).execute(builder)

        assert builder.state is BuilderState.TORN_DOWN
        assert not engine.view_exists(builder.view_name)
        assert engine.list_views() == []

    def test_torn_down_builder_cannot_rerun(self, people_store, engine):
        builder = ViewBuilder(people_store).where("age", ">", 1)
        executor = ViewExecutor(engine)
        executor.execute(builder)

        with pytest.raises(BuilderStateError):
            executor.execute(builder)

    def test_unknown_path_never_creates_view(self, people_store, engine):
        recording = RecordingEngine(engine)
        assert engine.list_views() == []

        builder = ViewBuilder(people_store).where("never.indexed", "=", 1)
        with pytest.raises(UnknownPathError):
            ViewExecutor(recording).execute(builder)

        assert recording.calls == []
        assert engine.list_views() == []
        assert builder.state is BuilderState.BUILDING

    @pytest.mark.parametrize("transactional", [True, False])
    def test_create_failure_still_drops(self, people_store, engine, transactional):
        recording = RecordingEngine(engine, fail_on={"create"}, transactional=transactional)
        builder = ViewBuilder(people_store).where("age", ">", 1)

        with pytest.raises(ViewLifecycleError) as exc_info:
            ViewExecutor(recording).execute(builder)

        assert exc_info.value.stage == "create"
        assert exc_info.value.cleanup_error is None
        assert recording.calls == ["create", "drop"]
        assert builder.state is BuilderState.TORN_DOWN
        assert engine.list_views() == []

    @pytest.mark.parametrize("transactional", [True, False])
    def test_select_failure_still_drops(self, people_store, engine, transactional):
        recording = RecordingEngine(engine, fail_on={"select"}, transactional=transactional)
        builder = ViewBuilder(people_store).where("age", ">", 1)

        with pytest.raises(ViewLifecycleError) as exc_info:
            ViewExecutor(recording).execute(builder)

        assert exc_info.value.stage == "select"
        assert recording.calls == ["create", "select", "drop"]
        assert builder.state is BuilderState.TORN_DOWN
        assert engine.list_views() == []

    def test_drop_failure_after_success_is_cleanup_error(self, people_store, engine, log_records):
        recording = RecordingEngine(engine, fail_on={"drop"}, transactional=False)
        builder = ViewBuilder(people_store).where("age", ">", 1)

        with pytest.raises(ViewCleanupError) as exc_info:
            ViewExecutor(recording).execute(builder)

        assert exc_info.value.stage == "drop"
        assert exc_info.value.view_name == builder.view_name
        assert builder.state is BuilderState.TORN_DOWN
        # Without rollback the orphan stays; the error names it for cleanup
        assert engine.view_exists(builder.view_name)
        assert any(
            r["level"].name == "ERROR" and builder.view_name in r["message"] for r in log_records
        )

    def test_drop_failure_rolled_back_by_transaction(self, people_store, engine):
        recording = RecordingEngine(engine, fail_on={"drop"}, transactional=True)
        builder = ViewBuilder(people_store).where("age", ">", 1)

        with pytest.raises(ViewCleanupError):
            ViewExecutor(recording).execute(builder)

        assert engine.list_views() == []

    def test_drop_failure_does_not_mask_original(self, people_store, engine):
        recording = RecordingEngine(engine, fail_on={"select", "drop"}, transactional=True)
        builder = ViewBuilder(people_store).where("age", ">", 1)

        with pytest.raises(ViewLifecycleError) as exc_info:
            ViewExecutor(recording).execute(builder)

        error = exc_info.value
        assert error.stage == "select"
        assert not isinstance(error, ViewCleanupError)
        assert isinstance(error.cleanup_error, ViewCleanupError)
        assert engine.list_views() == []


class TestConcurrency:
    """Overlapping queries from separate connections."""

    def test_concurrent_queries_never_collide(self, tmp_path, people):
        db_path = str(tmp_path / "people.db")
        seed = IndexStore.connect(db_path)
        for oid, document in people.items():
            seed.append(oid, scan(document))
        seed.close()

        workers = 4
        rounds = 5
        barrier = threading.Barrier(workers)
        names = []
        results = []
        errors = []
        lock = threading.Lock()

        def worker():
            store = IndexStore.connect(db_path)
            engine = SqliteEngine(store.conn)
            executor = ViewExecutor(engine)
            try:
                barrier.wait()
                for _ in range(rounds):
                    builder = ViewBuilder(store).where("age", ">=", 30).order_by("name")
                    oids = executor.execute(builder)
                    with lock:
                        names.append(builder.view_name)
                        results.append(oids)
            except Exception as e:
                with lock:
                    errors.append(e)
            finally:
                store.close()

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(names) == workers * rounds
        assert len(set(names)) == len(names)
        assert all(oids == ["d1", "d3"] for oids in results)

        engine = SqliteEngine.connect(db_path)
        assert engine.list_views() == []
        engine.close()
