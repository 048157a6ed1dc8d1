# src/sync_s3/pipeline.py
"""Core orchestration logic for the sync-s3 pipeline."""

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING, List, Optional, Set

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
)

from sync_s3.clients import ClientFactory
from sync_s3.config import AppConfig, BucketSpec, Config
from sync_s3.diff import get_missing_keys
from sync_s3.listing import list_bucket
from sync_s3.worker import TransferOutcome, transfer_worker

if TYPE_CHECKING:
    from types_aiobotocore_s3.client import S3Client

logger: logging.Logger = logging.getLogger(__name__)


class SyncPipeline:
    """Orchestrates one catch-up copy from the source to the destination."""

    def __init__(
        self,
        config: Config,
        shutdown_event: Optional[asyncio.Event] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        """
        Initializes the pipeline with the given configuration.

        Args:
            config (Config): The application configuration.
            shutdown_event (asyncio.Event, optional): Event to signal graceful
                shutdown. No new transfer starts once it is set.
            client_factory (ClientFactory, optional): Creates the S3 clients.
        """
        self._config: Config = config
        self._shutdown_event: asyncio.Event = shutdown_event or asyncio.Event()
        self._client_factory: ClientFactory = client_factory or ClientFactory(
            config.app
        )

    async def run(self) -> List[str]:
        """
        Executes the full synchronization.

        Creates both clients, lists both buckets, computes the missing keys
        and copies them. The run stops at the first failure; objects copied
        before it stay in the destination, so running again resumes the sync.

        Returns:
            List[str]: The relative keys that were transferred.

        Raises:
            StageError: The first connect, list, get or put failure.
        """
        source: BucketSpec = self._config.source
        destination: BucketSpec = self._config.destination
        logger.info(f"Starting sync from '{source}' to '{destination}'.")

        async with AsyncExitStack() as exit_stack:
            source_client: "S3Client" = await self._client_factory.get_client(
                source.profile, exit_stack, source.endpoint_url
            )
            dest_client: "S3Client" = await self._client_factory.get_client(
                destination.profile, exit_stack, destination.endpoint_url
            )

            source_keys: List[str] = await list_bucket(source_client, source)
            dest_keys: List[str] = await list_bucket(dest_client, destination)
            missing_keys: List[str] = get_missing_keys(source_keys, dest_keys)

            if not missing_keys:
                logger.info("All source objects are already in the destination.")
                return []

            logger.info(
                f"Found {len(missing_keys)} objects to transfer "
                f"({len(source_keys) - len(missing_keys)} already present)."
            )

            if self._config.app.dry_run:
                for key in missing_keys:
                    logger.info(f"[dry-run] Would copy '{key}'.")
                return []

            transferred: List[str] = await self._run_transfers(
                missing_keys, source_client, dest_client
            )

        logger.info(f"Sync completed: {len(transferred)} objects transferred.")
        return transferred

    async def _run_transfers(
        self,
        missing_keys: List[str],
        source_client: "S3Client",
        dest_client: "S3Client",
    ) -> List[str]:
        """
        Copies the missing keys with a bounded pool of workers.

        With a concurrency of one, keys are copied strictly in order. The
        first failure cancels every other worker and is re-raised.

        Args:
            missing_keys (List[str]): The relative keys to transfer.
            source_client (S3Client): The initialized source S3 client.
            dest_client (S3Client): The initialized destination S3 client.

        Returns:
            List[str]: The transferred keys, in completion order.
        """
        key_queue: asyncio.Queue[str] = asyncio.Queue()
        for key in missing_keys:
            key_queue.put_nowait(key)

        outcomes: List[TransferOutcome] = []
        abort_event: asyncio.Event = asyncio.Event()
        num_workers: int = max(
            1, min(self._config.app.max_concurrency, len(missing_keys))
        )

        progress: Progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeRemainingColumn(),
            transient=True,
            disable=not self._config.app.show_progress,
        )

        with progress:
            task_id: TaskID = progress.add_task("Syncing...", total=len(missing_keys))
            worker_tasks: List[asyncio.Task[None]] = [
                asyncio.create_task(
                    transfer_worker(
                        worker_id=i,
                        config=self._config,
                        key_queue=key_queue,
                        source_client=source_client,
                        dest_client=dest_client,
                        outcomes=outcomes,
                        stop_event=self._shutdown_event,
                        abort_event=abort_event,
                        progress_bar=progress,
                        progress_task_id=task_id,
                    )
                )
                for i in range(num_workers)
            ]

            done: Set[asyncio.Task[None]]
            pending: Set[asyncio.Task[None]]
            done, pending = await asyncio.wait(
                worker_tasks, return_when=asyncio.FIRST_EXCEPTION
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        transferred: List[str] = [o.key for o in outcomes if o.ok]
        failures: List[TransferOutcome] = [o for o in outcomes if not o.ok]
        if failures:
            logger.error(
                f"Sync stopped after {len(transferred)} transfers. "
                "Run again to resume once the failure is addressed."
            )
            raise failures[0].error  # type: ignore[misc]
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()  # type: ignore[misc]

        if self._shutdown_event.is_set() and len(transferred) < len(missing_keys):
            logger.warning(
                f"Shutdown requested: {len(missing_keys) - len(transferred)} "
                "objects were not transferred."
            )
        return transferred


async def run(
    source: BucketSpec,
    destination: BucketSpec,
    app: Optional[AppConfig] = None,
) -> List[str]:
    """
    Copies every object under `source` that is missing under `destination`.

    Args:
        source (BucketSpec): The bucket and path to copy from.
        destination (BucketSpec): The bucket and path to copy to.
        app (AppConfig, optional): Operational parameters.

    Returns:
        List[str]: The relative keys that were transferred.
    """
    config: Config = Config(
        source=source, destination=destination, app=app or AppConfig()
    )
    return await SyncPipeline(config).run()
