from contextlib import closing

from asyncquery.config.settings import Settings
from asyncquery.database.connection import close_pool, init_pool
from asyncquery.database.repositories.async_query_repository import AsyncQueryRepository
from asyncquery.database.repositories.async_query_result_repository import (
    AsyncQueryResultRepository,
)
from asyncquery.database.retry import RetryPolicy
from asyncquery.dispatch.dispatcher import BackendDispatcher, build_dispatcher
from asyncquery.executor.executor import JobExecutor
from asyncquery.executor.recovery import RecoverySweep
from asyncquery.executor.result_recorder import ResultRecorder
from asyncquery.executor.status_manager import StatusTransitionManager
from asyncquery.logging.logger import Log
from asyncquery.worker.pool import WorkerPool
from asyncquery.worker.worker import Worker


def main() -> None:
    """Entry point: initialize pool -> recover -> start workers -> poll for jobs."""
    settings = Settings()
    Log.configure(settings.log_level)
    init_pool(settings)

    try:
        with closing(build_dispatcher(settings)) as dispatcher:
            _serve(settings, dispatcher)
    finally:
        close_pool()


def _serve(settings: Settings, dispatcher: BackendDispatcher) -> None:
    query_repo = AsyncQueryRepository()
    result_repo = AsyncQueryResultRepository()
    retry_policy = RetryPolicy.from_settings(settings)
    executor = JobExecutor(
        dispatcher=dispatcher,
        status_manager=StatusTransitionManager(query_repo, retry_policy),
        result_recorder=ResultRecorder(query_repo, result_repo, retry_policy),
    )
    recovery = RecoverySweep(
        executor=executor,
        dispatcher=dispatcher,
        query_repo=query_repo,
        result_repo=result_repo,
        retry_policy=retry_policy,
        processing_timeout_seconds=settings.processing_timeout_seconds,
    )
    recovery.run()

    pool = WorkerPool(
        executor,
        size=settings.worker_pool_size,
        queue_size=settings.worker_queue_size,
        max_run_seconds=settings.query_max_run_seconds,
        on_outcome=recovery.track,
    )
    pool.start()
    try:
        Worker(query_repo, pool, settings, recovery=recovery).run()
    finally:
        pool.shutdown(wait=True)


if __name__ == "__main__":
    main()
