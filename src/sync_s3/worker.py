# src/sync_s3/worker.py
"""
Defines the transfer worker function.

A worker pulls relative keys from a shared queue and copies each one from the
source bucket to the destination bucket, recording a `TransferOutcome` per
key. A failed transfer is recorded and re-raised so the pipeline can stop the
remaining workers.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from sync_s3.config import Config
from sync_s3.exceptions import StageError
from sync_s3.transfer import transfer_object

if TYPE_CHECKING:
    from rich.progress import Progress, TaskID
    from types_aiobotocore_s3.client import S3Client

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferOutcome:
    """
    The result of one object transfer.

    Attributes:
        key (str): The relative key that was transferred.
        error (StageError, optional): The failure, if the transfer failed.
        bytes_copied (int): Number of bytes copied on success.
    """

    key: str
    error: Optional[StageError] = None
    bytes_copied: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


async def transfer_worker(
    worker_id: int,
    config: Config,
    key_queue: asyncio.Queue[str],
    source_client: "S3Client",
    dest_client: "S3Client",
    outcomes: List[TransferOutcome],
    stop_event: asyncio.Event,
    abort_event: asyncio.Event,
    progress_bar: "Progress",
    progress_task_id: "TaskID",
) -> None:
    """
    Transfers keys from the queue until it is empty or the run is stopped.

    Args:
        worker_id (int): A unique identifier for this worker.
        config (Config): The application configuration.
        key_queue (asyncio.Queue[str]): Pre-filled queue of relative keys.
        source_client (S3Client): An initialized S3 client for the source.
        dest_client (S3Client): An initialized S3 client for the destination.
        outcomes (List[TransferOutcome]): Shared list the outcomes are appended to.
        stop_event (asyncio.Event): Shutdown signal. When set, no new key is started.
        abort_event (asyncio.Event): Set by the first failing worker so the
            others stop taking keys.
        progress_bar (Progress): The rich Progress instance for UI updates.
        progress_task_id (TaskID): The TaskID for the main progress bar.

    Raises:
        StageError: The first transfer failure this worker encounters.
    """
    logger.debug(f"Worker {worker_id} started.")
    while not (stop_event.is_set() or abort_event.is_set()):
        try:
            key: str = key_queue.get_nowait()
        except asyncio.QueueEmpty:
            break

        try:
            size: int = await transfer_object(
                source_client,
                config.source,
                dest_client,
                config.destination,
                key,
                config.app,
            )
        except StageError as e:
            outcomes.append(TransferOutcome(key=key, error=e))
            abort_event.set()
            logger.error(f"Failed to transfer '{key}': {e}")
            raise
        finally:
            key_queue.task_done()

        outcomes.append(TransferOutcome(key=key, bytes_copied=size))
        progress_bar.update(progress_task_id, advance=1)
    logger.debug(f"Worker {worker_id} stopped.")
