# src/sync_s3/config.py
"""
Configuration for the sync-s3 pipeline.

This module centralizes all configuration, loading values from environment
variables when they are not given explicitly and providing typed dataclasses
for use throughout the application.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from sync_s3.exceptions import ConfigError

S3_SCHEME: str = "s3://"
KEY_SEPARATOR: str = "/"
ENV_PREFIX: str = "SYNC_S3"


def _get_env_var(name: str, default: Optional[str] = None) -> str:
    """
    Retrieves a required environment variable.

    Args:
        name (str): The name of the environment variable.
        default (str, optional): The default value if the variable is not set.

    Returns:
        str: The value of the environment variable.
    """
    value: Optional[str] = os.environ.get(name, default)
    if not value:
        raise ConfigError(f"Environment variable '{name}' must be set.")
    return value


@dataclass(frozen=True)
class BucketSpec:
    """
    Identifies one side of a sync: a profile, a bucket and an optional subfolder.

    The bucket never carries the `s3://` scheme and the path never carries
    leading or trailing separators; both are normalized on construction, so
    `s3://bucket/data` and `s3://bucket/data/` describe the same spec.

    Attributes:
        profile (str): The credential profile used to reach the bucket.
        bucket (str): The bucket name.
        path (str): The subfolder inside the bucket, empty for the bucket root.
        endpoint_url (str, optional): Endpoint of an S3-compatible service.
    """

    profile: str
    bucket: str
    path: str = ""
    endpoint_url: Optional[str] = None

    def __post_init__(self) -> None:
        bucket: str = self.bucket.replace(S3_SCHEME, "", 1).strip(KEY_SEPARATOR)
        if not bucket or KEY_SEPARATOR in bucket:
            raise ConfigError(f"Invalid bucket name: '{self.bucket}'.")
        if not self.profile:
            raise ConfigError(f"A credential profile is required for '{bucket}'.")
        object.__setattr__(self, "bucket", bucket)
        object.__setattr__(self, "path", (self.path or "").strip(KEY_SEPARATOR))

    @classmethod
    def from_uri(
        cls, uri: str, profile: str, endpoint_url: Optional[str] = None
    ) -> "BucketSpec":
        """
        Parses a `s3://bucket/sub/folder` location.

        Args:
            uri (str): The bucket location, with or without the `s3://` scheme.
            profile (str): The credential profile for this bucket.
            endpoint_url (str, optional): Endpoint of an S3-compatible service.

        Returns:
            BucketSpec: The parsed spec.
        """
        location: str = uri.strip()
        if location.startswith(S3_SCHEME):
            location = location[len(S3_SCHEME) :]
        bucket, _, path = location.partition(KEY_SEPARATOR)
        return cls(profile=profile, bucket=bucket, path=path, endpoint_url=endpoint_url)

    @classmethod
    def from_env(cls, side: str) -> "BucketSpec":
        """
        Loads a spec from `SYNC_S3_<SIDE>`, `SYNC_S3_<SIDE>_PROFILE` and
        the optional `SYNC_S3_<SIDE>_ENDPOINT_URL`.

        Args:
            side (str): Either `SOURCE` or `DESTINATION`.

        Returns:
            BucketSpec: The spec read from the environment.
        """
        name: str = f"{ENV_PREFIX}_{side.upper()}"
        return cls.from_uri(
            _get_env_var(name),
            _get_env_var(f"{name}_PROFILE"),
            os.environ.get(f"{name}_ENDPOINT_URL") or None,
        )

    @property
    def prefix(self) -> str:
        """The listing prefix: `path/`, or an empty string at the bucket root."""
        return f"{self.path}{KEY_SEPARATOR}" if self.path else ""

    def format_key(self, key: str) -> str:
        """
        Joins the path and a key with a single separator.

        A key that is already under this spec's path is returned unchanged,
        so formatting is idempotent. Keys taken from a listing are rebuilt
        with `object_key` instead.

        Args:
            key (str): A key relative to the path, or an already formatted key.

        Returns:
            str: The full object key inside the bucket.
        """
        key = key.lstrip(KEY_SEPARATOR)
        if not self.path:
            return key
        if not key or key == self.path or key.startswith(self.prefix):
            return key or self.path
        return f"{self.prefix}{key}"

    def relative_key(self, raw_key: str) -> str:
        """
        Strips exactly the path prefix from a raw storage key.

        The rest of the key is kept verbatim, including leading or doubled
        separators, since those are part of the object's name.

        Args:
            raw_key (str): The key as reported by the storage listing.

        Returns:
            str: The key relative to this spec's path.
        """
        if self.prefix and raw_key.startswith(self.prefix):
            return raw_key[len(self.prefix) :]
        return raw_key

    def object_key(self, relative_key: str) -> str:
        """
        Rebuilds the storage key of an object listed by `relative_key`.

        Unlike `format_key`, the key is not normalized, so the two methods
        are exact inverses for every listed object.

        Args:
            relative_key (str): A key relative to this spec's path.

        Returns:
            str: The full object key inside the bucket.
        """
        return f"{self.prefix}{relative_key}"

    def __str__(self) -> str:
        return f"{S3_SCHEME}{self.bucket}/{self.path}"


@dataclass(frozen=True)
class AppConfig:
    """
    Defines the application's operational parameters.

    Attributes:
        max_concurrency (int): Number of transfers allowed in flight at once.
        max_attempts (int): Attempts botocore makes for a single request.
        multipart_threshold_bytes (int): Objects larger than this are streamed
            as a multipart upload.
        multipart_chunk_size_bytes (int): Size of each streamed upload part.
        dry_run (bool): List missing keys without transferring them.
        show_progress (bool): Whether to render a progress bar.
    """

    max_concurrency: int = 1
    max_attempts: int = 3
    multipart_threshold_bytes: int = 64 * 1024**2
    multipart_chunk_size_bytes: int = 16 * 1024**2
    dry_run: bool = False
    show_progress: bool = True


@dataclass(frozen=True)
class Config:
    """
    Top-level configuration container for the entire application.

    Attributes:
        source (BucketSpec): The bucket objects are copied from.
        destination (BucketSpec): The bucket missing objects are copied to.
        app (AppConfig): General application settings.
    """

    source: BucketSpec = field(default_factory=lambda: BucketSpec.from_env("SOURCE"))
    destination: BucketSpec = field(
        default_factory=lambda: BucketSpec.from_env("DESTINATION")
    )
    app: AppConfig = field(default_factory=AppConfig)
