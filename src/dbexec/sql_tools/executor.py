"""Transaction runner - sequences catalog queries inside one transaction."""

import time
import logging
import uuid
from typing import Any, List, Optional, Sequence, Tuple

from .binder import bind_parameters, render_placeholders
from .errors import (
    ApprovalRequiredError,
    DbExecError,
    ExecutionError,
    RowLimitExceededError,
)
from .loader import QueryCatalog
from .models import (
    ExecutionContext,
    ExecutionRequest,
    QueryDefinition,
    StatementMode,
    StatementOutcome,
    TransactionResult,
    TransactionStatus,
)
from .preview import PreviewTranslator


logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("dbexec_audit")


class Transaction:
    """
    One transaction on a DB-API connection.

    DB-API drivers open the transaction implicitly, so the connection must
    not be in autocommit mode. Rollback is idempotent: it is a no-op once
    the transaction has been committed or rolled back.
    """

    def __init__(self, connection: Any):
        try:
            autocommit = getattr(connection, "autocommit", False)
        except Exception as e:
            raise ExecutionError(f"Connection is not usable: {e}") from e
        if autocommit is True:
            raise ExecutionError("Connection is in autocommit mode; refusing to run without a transaction")
        self.connection = connection
        self.finalized = False

    def commit(self):
        try:
            self.connection.commit()
        except Exception as e:
            raise ExecutionError(f"Failed to commit transaction: {e}") from e
        self.finalized = True

    def rollback(self) -> bool:
        """Roll back unless already finalized. Returns True if a rollback was issued."""
        if self.finalized:
            return False
        self.finalized = True
        try:
            self.connection.rollback()
        except Exception as e:
            # Keep the error that caused the rollback as the one reported
            logger.error(f"Rollback failed: {e}", exc_info=True)
        return True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.rollback()
        return False


class TransactionRunner:
    """
    Runs an ExecutionRequest against one connection as a single unit.

    Statements run strictly in request order. Read-only statements run
    directly in both modes. Without approval, mutating statements run only
    as previews and the transaction is rolled back. With approval they run
    as written, are checked against max_rows_affected, and everything is
    committed once all of them succeed. The first failure aborts the rest
    and rolls back the whole transaction.
    """

    def __init__(
        self,
        catalog: QueryCatalog,
        connection: Any,
        paramstyle: str = "qmark",
        translator: Optional[PreviewTranslator] = None,
    ):
        self.catalog = catalog
        self.connection = connection
        self.paramstyle = paramstyle
        self.translator = translator or PreviewTranslator()

    def run(
        self,
        request: ExecutionRequest,
        context: Optional[ExecutionContext] = None
    ) -> TransactionResult:
        """
        Execute a request with correlation tracking.

        Args:
            request: Query IDs, parameter values and approve flag
            context: Execution context with correlation ID

        Returns:
            TransactionResult; failures are reported in it, not raised
        """
        if context is None:
            context = ExecutionContext(
                correlation_id=str(uuid.uuid4()),
                interface='unknown'
            )

        mode = "approved" if request.approve else "dry run"
        logger.info(f"{context} Running {len(request.query_ids)} queries ({mode}): "
                    f"{', '.join(request.query_ids)}")

        outcomes: List[StatementOutcome] = []
        current_id: Optional[str] = None
        start_time = time.monotonic()

        try:
            with Transaction(self.connection) as tx:
                for query_id in request.query_ids:
                    current_id = query_id
                    outcome = self._run_statement(query_id, request)
                    outcomes.append(outcome)
                    self._audit_statement(context, outcome)
                current_id = None

                if request.approve:
                    tx.commit()
                    status = TransactionStatus.COMMITTED
                else:
                    tx.rollback()
                    status = TransactionStatus.ROLLED_BACK_DRY_RUN
            error = None

        except DbExecError as e:
            if e.query_id is None:
                e.query_id = current_id
            if current_id is not None:
                failed = StatementOutcome(query_id=current_id, mode=StatementMode.FAILED, error=e.message)
                outcomes.append(failed)
                self._audit_statement(context, failed)
            logger.error(f"{context} Transaction rolled back: {e.message}")
            status = TransactionStatus.ROLLED_BACK_ON_ERROR
            error = e

        execution_time = time.monotonic() - start_time
        result = TransactionResult(
            status=status,
            outcomes=outcomes,
            error=error,
            metadata={
                'statement_count': len(request.query_ids),
                'execution_time_seconds': execution_time,
                'approve': request.approve,
            },
            correlation_id=context.correlation_id,
        )

        audit_logger.info(
            f"{context} transaction status={status.value} queries={request.query_ids} "
            f"error_code={result.error_code}"
        )
        logger.info(f"{context} Transaction {status.value} in {execution_time:.2f}s")

        return result

    def _run_statement(self, query_id: str, request: ExecutionRequest) -> StatementOutcome:
        """Resolve, bind and run one statement. Raises DbExecError on failure."""
        query_def = self.catalog.lookup(query_id)
        args = bind_parameters(query_def, request.params)

        if self.translator.is_read_only(query_def.sql):
            if query_def.requires_approval and not request.approve:
                raise ApprovalRequiredError(query_def.id)
            columns, rows, _ = self._execute(query_def.sql, args)
            return StatementOutcome(
                query_id=query_def.id,
                mode=StatementMode.EXECUTED,
                sql=query_def.sql,
                columns=columns or [],
                rows=rows or [],
            )

        if not request.approve:
            preview_sql = self.translator.translate(query_def.sql)
            columns, rows, _ = self._execute(preview_sql, args)
            rows = rows or []
            logger.info(f"[PREVIEW] {query_def.id}: {len(rows)} rows would be affected")
            return StatementOutcome(
                query_id=query_def.id,
                mode=StatementMode.PREVIEWED,
                sql=preview_sql,
                rows_affected=len(rows),
                columns=columns or [],
                rows=rows,
            )

        columns, rows, count = self._execute(query_def.sql, args)
        self._check_row_limit(query_def, count)
        return StatementOutcome(
            query_id=query_def.id,
            mode=StatementMode.EXECUTED,
            sql=query_def.sql,
            rows_affected=count,
            columns=columns,
            rows=rows,
        )

    def _check_row_limit(self, query_def: QueryDefinition, count: int):
        """Enforce max_rows_affected after the statement ran."""
        if query_def.max_rows_affected <= 0:
            return
        if count < 0:
            raise ExecutionError(
                f"Driver did not report affected rows for {query_def.id}; "
                f"cannot enforce max_rows_affected={query_def.max_rows_affected}",
                query_id=query_def.id,
            )
        if count > query_def.max_rows_affected:
            raise RowLimitExceededError(query_def.id, count, query_def.max_rows_affected)

    def _execute(
        self, sql: str, args: Sequence[Any]
    ) -> Tuple[Optional[List[str]], Optional[List[Tuple[Any, ...]]], int]:
        """
        Execute one statement and drain its result set.

        Returns:
            (column names or None, rows or None, driver rowcount)
        """
        rendered, bind_args = render_placeholders(sql, args, self.paramstyle)
        if isinstance(bind_args, list):
            bind_args = tuple(bind_args)

        cursor = None
        try:
            cursor = self.connection.cursor()
            cursor.execute(rendered, bind_args)

            columns = None
            rows = None
            if cursor.description:
                columns = [desc[0] for desc in cursor.description]
                rows = [tuple(row) for row in cursor.fetchall()]

            return columns, rows, cursor.rowcount
        except Exception as e:
            raise ExecutionError(f"Execution error: {e}") from e
        finally:
            if cursor is not None:
                cursor.close()

    def _audit_statement(self, context: ExecutionContext, outcome: StatementOutcome):
        """Log statement outcome for audit trail."""
        audit_logger.info(
            f"{context} query={outcome.query_id} mode={outcome.mode.value} "
            f"rows_affected={outcome.rows_affected} error={outcome.error}"
        )
