# src/sync_s3/__init__.py
"""
sync-s3: A one-shot catch-up copy between two S3 buckets.

This package copies every object found under a source bucket and path that
is missing under a destination bucket and path, with each bucket reached
through its own named credential profile.

The primary entry point for programmatic use is the `SyncPipeline` class.
"""

from typing import List

from sync_s3.config import AppConfig, BucketSpec, Config
from sync_s3.pipeline import SyncPipeline, run

__all__: List[str] = ["AppConfig", "BucketSpec", "Config", "SyncPipeline", "run"]
