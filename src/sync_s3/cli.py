# src/sync_s3/cli.py
"""Command-line interface for the sync-s3 tool."""

import asyncio
import logging
import sys
from dataclasses import replace
from typing import Any, List, Optional

import click
from dotenv import load_dotenv
from rich.logging import RichHandler

from sync_s3.config import AppConfig, BucketSpec, Config
from sync_s3.exceptions import ConfigError, SyncS3Error
from sync_s3.signals import GracefulShutdown

logger: logging.Logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    """Configure rich-based logging for the application."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # Silence noisy loggers
    for logger_name in ["botocore", "aiobotocore", "s3transfer", "urllib3"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def _bucket_spec(
    side: str,
    uri: Optional[str],
    profile: Optional[str],
    endpoint_url: Optional[str],
) -> BucketSpec:
    """
    Builds one side of the sync from the command line, or from the environment.

    Args:
        side (str): Either `SOURCE` or `DESTINATION`.
        uri (str, optional): The `s3://bucket/path` argument.
        profile (str, optional): The credential profile argument.
        endpoint_url (str, optional): The endpoint URL option.

    Returns:
        BucketSpec: The bucket spec for that side.
    """
    if uri is None and profile is None:
        spec: BucketSpec = BucketSpec.from_env(side)
        return replace(spec, endpoint_url=endpoint_url) if endpoint_url else spec
    if not uri or not profile:
        raise ConfigError(
            f"Both the {side.lower()} bucket and its profile must be given."
        )
    return BucketSpec.from_uri(uri, profile, endpoint_url)


async def main_async(config: Config) -> List[str]:
    """
    Asynchronously execute the sync pipeline.

    Args:
        config (Config): The application configuration.

    Returns:
        List[str]: The keys that were transferred.
    """
    # Lazily import to keep CLI startup fast
    from sync_s3.pipeline import SyncPipeline

    async with GracefulShutdown() as shutdown_event:
        pipeline: SyncPipeline = SyncPipeline(config, shutdown_event)
        return await pipeline.run()


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.argument("source", required=False)
@click.argument("source_profile", required=False)
@click.argument("destination", required=False)
@click.argument("destination_profile", required=False)
@click.option(
    "--source-endpoint-url",
    default=None,
    help="Endpoint of an S3-compatible service hosting the source bucket.",
)
@click.option(
    "--destination-endpoint-url",
    default=None,
    help="Endpoint of an S3-compatible service hosting the destination bucket.",
)
@click.option(
    "--max-concurrency",
    type=click.IntRange(min=1),
    default=1,
    help="Maximum number of concurrent transfers.",
    show_default=True,
)
@click.option(
    "--max-attempts",
    type=click.IntRange(min=1),
    default=3,
    help="Attempts the S3 client makes for each request.",
    show_default=True,
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="List the missing objects without copying them.",
)
@click.option(
    "--no-progress",
    is_flag=True,
    default=False,
    help="Disable the progress bar.",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Set the logging level.",
    show_default=True,
)
def cli(**kwargs: Any) -> None:
    """
    Copy objects missing from one S3 bucket into another.

    Lists SOURCE (s3://bucket[/path]) under SOURCE_PROFILE and DESTINATION
    under DESTINATION_PROFILE, then streams every object present in the
    source but absent from the destination. Profiles must be configured in
    your ~/.aws/config file.

    The run stops at the first failed object. Objects already copied stay
    in place, so running the same command again resumes the sync.

    Buckets and profiles may also be set with the SYNC_S3_SOURCE,
    SYNC_S3_SOURCE_PROFILE, SYNC_S3_DESTINATION and
    SYNC_S3_DESTINATION_PROFILE environment variables or a .env file.
    """
    load_dotenv()
    setup_logging(kwargs["log_level"])

    try:
        app_config: AppConfig = AppConfig(
            max_concurrency=kwargs["max_concurrency"],
            max_attempts=kwargs["max_attempts"],
            dry_run=kwargs["dry_run"],
            show_progress=not kwargs["no_progress"],
        )
        config: Config = Config(
            source=_bucket_spec(
                "SOURCE",
                kwargs["source"],
                kwargs["source_profile"],
                kwargs["source_endpoint_url"],
            ),
            destination=_bucket_spec(
                "DESTINATION",
                kwargs["destination"],
                kwargs["destination_profile"],
                kwargs["destination_endpoint_url"],
            ),
            app=app_config,
        )

        transferred: List[str] = asyncio.run(main_async(config))
        logger.info(
            f"✅ Run completed successfully, {len(transferred)} objects copied."
        )
    except SyncS3Error as e:
        logger.critical(f"A critical application error occurred: {e}")
        sys.exit(1)
    except asyncio.CancelledError:
        logger.warning("Shutdown signal received. Exiting.")
    except Exception:
        logger.critical(
            "An unexpected error caused the application to fail:", exc_info=True
        )
        sys.exit(1)


if __name__ == "__main__":
    cli()
