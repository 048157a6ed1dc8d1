# src/sync_s3/listing.py
"""Listing of the object keys stored under a bucket prefix."""

import logging
from typing import TYPE_CHECKING, AsyncIterator, List

from botocore.exceptions import BotoCoreError, ClientError

from sync_s3.config import BucketSpec
from sync_s3.exceptions import ListError

if TYPE_CHECKING:
    from types_aiobotocore_s3.client import S3Client
    from types_aiobotocore_s3.paginator import ListObjectsV2Paginator
    from types_aiobotocore_s3.type_defs import ListObjectsV2OutputTypeDef

logger: logging.Logger = logging.getLogger(__name__)


async def list_bucket(client: "S3Client", spec: BucketSpec) -> List[str]:
    """
    Lists every object under the bucket's path, following all pages.

    Keys are returned relative to the path, in storage order. The folder
    placeholder object for the path itself is skipped.

    Args:
        client (S3Client): A client for the bucket's profile.
        spec (BucketSpec): The bucket and path to list.

    Returns:
        List[str]: The relative keys of all objects under the path.

    Raises:
        ListError: If any listing request fails.
    """
    paginator: "ListObjectsV2Paginator" = client.get_paginator("list_objects_v2")
    pages: AsyncIterator["ListObjectsV2OutputTypeDef"] = paginator.paginate(
        Bucket=spec.bucket, Prefix=spec.prefix
    )
    keys: List[str] = []
    try:
        async for page in pages:
            for content in page.get("Contents", []):
                key: str = spec.relative_key(content["Key"])
                if key:
                    keys.append(key)
    except (ClientError, BotoCoreError) as e:
        raise ListError(
            "while listing objects", bucket=spec.bucket, key=spec.prefix, cause=e
        ) from e

    logger.info(f"Found {len(keys)} objects under '{spec}'.")
    return keys
