from dataclasses import replace

from asyncquery.backends.models import BackendResponse
from asyncquery.database.exceptions import (
    InvalidTransitionError,
    JobNotFoundError,
    PersistenceError,
)
from asyncquery.database.models import SUCCESS_STATUS_CODE, QueryStatus
from asyncquery.dispatch.dispatcher import BackendDispatcher
from asyncquery.executor.cancel import CancellationToken
from asyncquery.executor.exceptions import ExecutionError, PersistenceFailedError
from asyncquery.executor.models import ExecutionOutcome, OutcomeKind, QueryJob
from asyncquery.executor.result_recorder import ResultRecorder
from asyncquery.executor.status_manager import StatusTransitionManager
from asyncquery.logging.logger import Log


class JobExecutor:
    """Drives one job from queued to a terminal status.

    Order per job: processing write -> backend call -> terminal write ->
    result creation -> result attach. Without a status manager and result
    recorder the executor only dispatches and classifies.
    """

    def __init__(
        self,
        dispatcher: BackendDispatcher,
        status_manager: StatusTransitionManager | None = None,
        result_recorder: ResultRecorder | None = None,
    ) -> None:
        if (status_manager is None) != (result_recorder is None):
            raise ValueError("status_manager and result_recorder must be given together")
        self._dispatcher = dispatcher
        self._status_manager = status_manager
        self._result_recorder = result_recorder

    @property
    def persistent(self) -> bool:
        return self._status_manager is not None

    def execute(self, job: QueryJob, token: CancellationToken | None = None) -> ExecutionOutcome:
        """Run job to completion. Never raises for job-level failures."""
        token = token or CancellationToken()
        Log.info(f"Executing async query {job.id} ({job.query_type.value})")

        if self._status_manager is not None:
            try:
                self._status_manager.set_status(job.id, QueryStatus.PROCESSING)
            except JobNotFoundError as exc:
                return self._aborted(job, exc)
            except InvalidTransitionError as exc:
                return self._skipped(job, exc)
            except PersistenceError as exc:
                # nothing was written; a queued job is claimed again, a processing one is swept
                Log.error(f"Async query {job.id} could not enter processing: {exc}")
                return ExecutionOutcome(
                    job_id=job.id, kind=OutcomeKind.NEEDS_RECOVERY, error_message=str(exc)
                )

        try:
            token.raise_if_cancelled()
            response = self._dispatcher.dispatch(job.query_type, job.query, job.principal)
            token.raise_if_cancelled()
        except ExecutionError as exc:
            Log.error(f"Async query {job.id} failed during dispatch: {exc.diagnostic}")
            return self.fail(job, exc)
        except Exception as exc:
            Log.exception(f"Async query {job.id} hit an unexpected error during dispatch: {exc}")
            return self.fail(job, ExecutionError(f"Unexpected error: {exc}"))

        status = classify(response)
        Log.info(f"Async query {job.id} answered {response.status_code}, classified {status.value}")
        return self._finish(job, status, response.status_code, response.body, error_message=None)

    def fail(self, job: QueryJob, error: ExecutionError) -> ExecutionOutcome:
        """Record an execution error as a failure with a diagnostic result."""
        return self._finish(
            job,
            QueryStatus.FAILURE,
            error.status_code,
            error.to_response_body(),
            error_message=error.diagnostic,
        )

    def complete_result(
        self, job: QueryJob, status: QueryStatus, status_code: int, body: str
    ) -> ExecutionOutcome:
        """Create and attach the result for a job whose terminal status is already written."""
        if self._status_manager is None or self._result_recorder is None:
            raise RuntimeError("complete_result needs a persistent executor")
        try:
            result = self._result_recorder.create_result(job.id, status_code, body)
            self._status_manager.attach_result(job.id, result)
        except JobNotFoundError as exc:
            return self._aborted(job, exc)
        except InvalidTransitionError as exc:
            return self._skipped(job, exc)
        except PersistenceError as exc:
            Log.error(f"Async query {job.id} is {status.value} but its result was not saved: {exc}")
            return ExecutionOutcome(
                job_id=job.id,
                kind=OutcomeKind.NEEDS_RECOVERY,
                status=status,
                status_code=status_code,
                body=body,
            )
        return ExecutionOutcome(
            job_id=job.id,
            kind=OutcomeKind.FINISHED,
            status=status,
            status_code=status_code,
            body=body,
            result=result,
        )

    def _finish(
        self,
        job: QueryJob,
        status: QueryStatus,
        status_code: int,
        body: str,
        error_message: str | None,
        allow_fallback: bool = True,
    ) -> ExecutionOutcome:
        if self._status_manager is None:
            return ExecutionOutcome(
                job_id=job.id,
                kind=OutcomeKind.FINISHED,
                status=status,
                status_code=status_code,
                body=body,
                error_message=error_message,
            )

        try:
            self._status_manager.set_status(job.id, status, error_message)
        except JobNotFoundError as exc:
            return self._aborted(job, exc)
        except InvalidTransitionError as exc:
            return self._skipped(job, exc)
        except PersistenceError as exc:
            if allow_fallback:
                error = PersistenceFailedError(str(exc))
                return self._finish(
                    job,
                    QueryStatus.FAILURE,
                    error.status_code,
                    error.to_response_body(),
                    error_message=error.diagnostic,
                    allow_fallback=False,
                )
            Log.error(f"Async query {job.id} left in processing, terminal write failed: {exc}")
            return ExecutionOutcome(
                job_id=job.id,
                kind=OutcomeKind.NEEDS_RECOVERY,
                error_message=error_message,
            )

        outcome = self.complete_result(job, status, status_code, body)
        if error_message is None:
            return outcome
        return replace(outcome, error_message=error_message)

    @staticmethod
    def _aborted(job: QueryJob, exc: Exception) -> ExecutionOutcome:
        Log.error(f"Async query {job.id} aborted: {exc}")
        return ExecutionOutcome(job_id=job.id, kind=OutcomeKind.ABORTED, error_message=str(exc))

    @staticmethod
    def _skipped(job: QueryJob, exc: Exception) -> ExecutionOutcome:
        Log.warning(f"Async query {job.id} skipped: {exc}")
        return ExecutionOutcome(job_id=job.id, kind=OutcomeKind.SKIPPED, error_message=str(exc))


def classify(response: BackendResponse) -> QueryStatus:
    """200 is the only success; the body is never inspected."""
    if response.status_code == SUCCESS_STATUS_CODE:
        return QueryStatus.COMPLETE
    return QueryStatus.FAILURE
