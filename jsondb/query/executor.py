"""View executor - materialise, query and tear down one pivot view atomically.

execute() guarantees the view never outlives the call: the drop is issued
on every exit path (success, create failure, select failure) inside the same
transaction that created it. A failed drop is reported as ViewCleanupError;
when it follows an earlier failure, the earlier error is what propagates and
the cleanup error rides along on its ``cleanup_error`` attribute.
"""

from ..exceptions import EngineError, ViewCleanupError, ViewLifecycleError
from ..utils.logging import logger
from .builder import BuilderState, ViewBuilder
from .engine import RelationalEngine


class ViewExecutor:
    """Runs compiled ViewBuilders against a RelationalEngine."""

    def __init__(self, engine: RelationalEngine):
        self.engine = engine

    def execute(self, builder: ViewBuilder) -> list[str]:
        """Return the ids of documents matching the builder's predicates.

        Raises:
            UnknownPathError: before any SQL reaches the engine
            BuilderStateError: builder already materialised or torn down
            ViewLifecycleError: create or select failed (view still dropped)
            ViewCleanupError: selection succeeded but the drop failed
        """
        definition = builder.compile_view_definition()
        selection, params = builder.compile_selection()

        def unit(engine: RelationalEngine) -> list[str]:
            try:
                oids = self._materialize_and_select(engine, builder, definition, selection, params)
            except ViewLifecycleError as exc:
                self._teardown(engine, builder, original=exc)
                raise
            self._teardown(engine, builder)
            return oids

        try:
            return self.engine.run_in_transaction(unit)
        except EngineError as e:
            # BEGIN or COMMIT failed; the unit itself only raises lifecycle errors
            raise ViewLifecycleError("transaction", builder.view_name, str(e)) from e
        finally:
            # Teardown may never have run if the transaction could not begin
            if builder.state is not BuilderState.TORN_DOWN:
                builder.mark_torn_down()

    def _materialize_and_select(
        self,
        engine: RelationalEngine,
        builder: ViewBuilder,
        definition: str,
        selection: str,
        params: list,
    ) -> list[str]:
        view_name = builder.view_name
        try:
            engine.create_view(view_name, definition)
        except EngineError as e:
            raise ViewLifecycleError("create", view_name, str(e)) from e
        builder.mark_materialized()

        try:
            rows = engine.run_query(selection, params)
        except EngineError as e:
            raise ViewLifecycleError("select", view_name, str(e)) from e

        logger.debug("View {view} matched {count} document(s)", view=view_name, count=len(rows))
        return [row[0] for row in rows]

    def _teardown(
        self,
        engine: RelationalEngine,
        builder: ViewBuilder,
        original: ViewLifecycleError | None = None,
    ) -> None:
        view_name = builder.view_name
        try:
            engine.drop_view_if_exists(view_name)
        except EngineError as e:
            cleanup = ViewCleanupError(view_name, str(e))
            cleanup.__cause__ = e
            logger.error(
                "Failed to drop view {view}; it may need manual cleanup: {err}",
                view=view_name,
                err=str(e),
            )
            if original is None:
                raise cleanup from e
            original.cleanup_error = cleanup
        finally:
            builder.mark_torn_down()
