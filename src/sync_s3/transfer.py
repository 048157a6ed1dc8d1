# src/sync_s3/transfer.py
"""
Streaming transfer of a single object between two profile-bound clients.

Source and destination live under different credential profiles, so no
server-side copy is used: the body is fetched from the source and written to
the destination. Small objects are put in one request; larger ones are
streamed part by part as a multipart upload that is aborted on failure, so
an interrupted transfer never leaves a partial object behind.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from sync_s3.config import AppConfig, BucketSpec
from sync_s3.exceptions import GetError, PutError

if TYPE_CHECKING:
    from aiobotocore.response import StreamingBody
    from types_aiobotocore_s3.client import S3Client
    from types_aiobotocore_s3.type_defs import (
        CompletedPartTypeDef,
        GetObjectOutputTypeDef,
        HeadObjectOutputTypeDef,
    )

logger: logging.Logger = logging.getLogger(__name__)


@dataclass
class ObjectPayload:
    """
    The single-pass body of a source object.

    Use it as an async context manager: the underlying HTTP stream is
    released when the block exits, whether or not it was fully read.

    Attributes:
        bucket (str): The source bucket.
        key (str): The source key.
        body (StreamingBody): The lazy response stream.
        content_length (int): The object size in bytes.
        content_type (str, optional): The object's content type.
    """

    bucket: str
    key: str
    body: "StreamingBody"
    content_length: int
    content_type: Optional[str] = None

    async def __aenter__(self) -> "ObjectPayload":
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Releases the underlying stream."""
        self.body.close()

    async def read(self, amt: Optional[int] = None) -> bytes:
        """
        Reads up to `amt` bytes, or the remainder of the stream.

        Short reads from the network are accumulated, so fewer than `amt`
        bytes are returned only at the end of the stream.

        Args:
            amt (int, optional): The number of bytes wanted.

        Returns:
            bytes: The data read, empty once the stream is exhausted.

        Raises:
            GetError: If reading from the source stream fails.
        """
        try:
            if amt is None:
                return await self.body.read()
            buffer: bytearray = bytearray()
            while len(buffer) < amt:
                chunk: bytes = await self.body.read(amt - len(buffer))
                if not chunk:
                    break
                buffer.extend(chunk)
            return bytes(buffer)
        except (ClientError, BotoCoreError) as e:
            raise GetError(
                "while streaming object body", bucket=self.bucket, key=self.key, cause=e
            ) from e


async def get_object(client: "S3Client", bucket: str, key: str) -> ObjectPayload:
    """
    Opens a source object as a streaming payload.

    Args:
        client (S3Client): A client for the source profile.
        bucket (str): The source bucket.
        key (str): The full source key.

    Returns:
        ObjectPayload: The object's lazy body and metadata.

    Raises:
        GetError: If the object is missing, unreadable or the request fails.
    """
    logger.debug(f"Getting 's3://{bucket}/{key}'.")
    try:
        response: "GetObjectOutputTypeDef" = await client.get_object(
            Bucket=bucket, Key=key
        )
    except (ClientError, BotoCoreError) as e:
        raise GetError("while fetching object", bucket=bucket, key=key, cause=e) from e
    return ObjectPayload(
        bucket=bucket,
        key=key,
        body=response["Body"],
        content_length=response.get("ContentLength", 0),
        content_type=response.get("ContentType"),
    )


async def _multipart_put(
    client: "S3Client",
    bucket: str,
    key: str,
    payload: ObjectPayload,
    chunk_size: int,
    extra_args: Dict[str, str],
) -> Dict[str, Any]:
    """Streams the payload as a multipart upload, aborting it on any failure."""
    upload: Dict[str, Any] = await client.create_multipart_upload(
        Bucket=bucket, Key=key, **extra_args
    )
    upload_id: str = upload["UploadId"]
    parts: List["CompletedPartTypeDef"] = []
    try:
        while True:
            chunk: bytes = await payload.read(chunk_size)
            if not chunk:
                break
            part_number: int = len(parts) + 1
            part: Dict[str, Any] = await client.upload_part(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=part_number,
                Body=chunk,
                ContentLength=len(chunk),
            )
            parts.append({"ETag": part["ETag"], "PartNumber": part_number})
            logger.debug(f"Uploaded part {part_number} of '{key}' ({len(chunk)} B).")
        return await client.complete_multipart_upload(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": parts},
        )
    except BaseException:
        logger.warning(f"Aborting multipart upload of 's3://{bucket}/{key}'.")
        try:
            await client.abort_multipart_upload(
                Bucket=bucket, Key=key, UploadId=upload_id
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Could not abort multipart upload {upload_id}: {e}")
        raise


async def put_object(
    client: "S3Client",
    bucket: str,
    key: str,
    payload: ObjectPayload,
    app_config: AppConfig,
) -> Dict[str, Any]:
    """
    Writes a payload to the destination under its final key.

    The key is used as given; it must already include the destination path.

    Args:
        client (S3Client): A client for the destination profile.
        bucket (str): The destination bucket.
        key (str): The full destination key.
        payload (ObjectPayload): The source object's body.
        app_config (AppConfig): Multipart thresholds.

    Returns:
        Dict[str, Any]: The storage service's response to the write.

    Raises:
        PutError: If the write fails or the stored size does not match.
        GetError: If reading the source stream fails mid-transfer.
    """
    extra_args: Dict[str, str] = {}
    if payload.content_type:
        extra_args["ContentType"] = payload.content_type

    logger.debug(f"Putting 's3://{bucket}/{key}' ({payload.content_length} B).")
    try:
        response: Dict[str, Any]
        if payload.content_length > app_config.multipart_threshold_bytes:
            response = await _multipart_put(
                client,
                bucket,
                key,
                payload,
                app_config.multipart_chunk_size_bytes,
                extra_args,
            )
        else:
            # Zero-byte objects are written explicitly without touching the stream
            body: bytes = await payload.read() if payload.content_length > 0 else b""
            response = await client.put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentLength=len(body),
                **extra_args,
            )
        dest_meta: "HeadObjectOutputTypeDef" = await client.head_object(
            Bucket=bucket, Key=key
        )
    except (ClientError, BotoCoreError) as e:
        raise PutError("while writing object", bucket=bucket, key=key, cause=e) from e

    if dest_meta["ContentLength"] != payload.content_length:
        raise PutError(
            "integrity check: ContentLength mismatch "
            f"({payload.content_length} != {dest_meta['ContentLength']})",
            bucket=bucket,
            key=key,
        )
    return response


async def transfer_object(
    source_client: "S3Client",
    source: BucketSpec,
    dest_client: "S3Client",
    destination: BucketSpec,
    key: str,
    app_config: AppConfig,
) -> int:
    """
    Copies one missing object from the source to the destination.

    Args:
        source_client (S3Client): A client for the source profile.
        source (BucketSpec): The source bucket and path.
        dest_client (S3Client): A client for the destination profile.
        destination (BucketSpec): The destination bucket and path.
        key (str): The key relative to both paths.
        app_config (AppConfig): The application configuration.

    Returns:
        int: The number of bytes copied.
    """
    payload: ObjectPayload = await get_object(
        source_client, source.bucket, source.object_key(key)
    )
    async with payload:
        await put_object(
            dest_client,
            destination.bucket,
            destination.object_key(key),
            payload,
            app_config,
        )
    logger.debug(f"Copied '{key}' from '{source}' to '{destination}'.")
    return payload.content_length
