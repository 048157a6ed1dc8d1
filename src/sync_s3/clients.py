# src/sync_s3/clients.py
"""
Creation of profile-bound S3 clients.

Credential profiles are resolved entirely by botocore's standard mechanism
(`~/.aws/config`, `~/.aws/credentials`, `AWS_CONFIG_FILE`, ...); this module
only asks for "a client configured for profile P".
"""

import logging
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING, Callable, Optional

from aiobotocore.session import AioSession
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError

from sync_s3.config import AppConfig
from sync_s3.exceptions import ConnectError

if TYPE_CHECKING:
    from types_aiobotocore_s3.client import S3Client

logger: logging.Logger = logging.getLogger(__name__)

SessionFactory = Callable[[str], AioSession]


def _profile_session(profile: str) -> AioSession:
    return AioSession(profile=profile)


def build_boto_config(app_config: AppConfig) -> BotoConfig:
    """
    Builds the botocore client configuration shared by both clients.

    Args:
        app_config (AppConfig): The application configuration.

    Returns:
        BotoConfig: The client configuration.
    """
    return BotoConfig(
        signature_version="s3v4",
        max_pool_connections=app_config.max_concurrency + 10,
        retries={"max_attempts": app_config.max_attempts, "mode": "standard"},
    )


class ClientFactory:
    """Produces aiobotocore S3 clients bound to named credential profiles."""

    def __init__(
        self,
        app_config: AppConfig,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        """
        Initializes the factory.

        Args:
            app_config (AppConfig): The application configuration.
            session_factory (SessionFactory, optional): Builds a session for a
                profile name. Defaults to an `AioSession` bound to the profile.
        """
        self._boto_config: BotoConfig = build_boto_config(app_config)
        self._session_factory: SessionFactory = session_factory or _profile_session

    async def get_client(
        self,
        profile: str,
        exit_stack: AsyncExitStack,
        endpoint_url: Optional[str] = None,
    ) -> "S3Client":
        """
        Creates a client for `profile` and registers it on `exit_stack`.

        The client stays open until the exit stack is closed.

        Args:
            profile (str): The credential profile name.
            exit_stack (AsyncExitStack): Owns the client's lifetime.
            endpoint_url (str, optional): Endpoint of an S3-compatible service.

        Returns:
            S3Client: An authenticated S3 client.

        Raises:
            ConnectError: If the profile cannot be resolved or the client
                cannot be constructed.
        """
        logger.debug(f"Creating S3 client for profile '{profile}'.")
        try:
            session: AioSession = self._session_factory(profile)
            client: "S3Client" = await exit_stack.enter_async_context(
                session.create_client(
                    "s3", endpoint_url=endpoint_url, config=self._boto_config
                )
            )
        except BotoCoreError as e:
            raise ConnectError(profile, cause=e) from e
        return client
