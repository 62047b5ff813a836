"""Reading and writing baseline and output documents.

A location is ``-`` for stdin/stdout, an ``s3://bucket/key`` URI, or a local
path.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import boto3

from config import get_logger

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = get_logger(service="s3")

S3_SCHEME = "s3://"
STANDARD_STREAM = "-"


def is_s3_uri(location: str) -> bool:
    return location.startswith(S3_SCHEME)


def parse_s3_uri(uri: str) -> tuple[str, str]:
    """Split ``s3://bucket/key`` into bucket and key.

    Raises:
        ValueError: If the URI has no bucket or no key.
    """
    if not is_s3_uri(uri):
        raise ValueError(f"Not an S3 URI: {uri}")
    bucket, _, key = uri[len(S3_SCHEME) :].partition("/")
    if not bucket or not key:
        raise ValueError(f"S3 URI must name a bucket and a key: {uri}")
    return bucket, key


def get_s3_client() -> S3Client:
    return boto3.client("s3")


def read_object(s3_client: S3Client, uri: str) -> bytes:
    bucket, key = parse_s3_uri(uri)
    try:
        logger.info(f"Loading object from s3://{bucket}/{key}")
        response = s3_client.get_object(Bucket=bucket, Key=key)
        return response["Body"].read()
    except s3_client.exceptions.NoSuchKey:
        logger.error(f"S3 object not found: s3://{bucket}/{key}")
        raise
    except s3_client.exceptions.NoSuchBucket:
        logger.error(f"S3 bucket not found: {bucket}")
        raise


def write_object(s3_client: S3Client, uri: str, body: str, content_type: str) -> None:
    bucket, key = parse_s3_uri(uri)
    logger.info(f"Writing object to s3://{bucket}/{key}")
    s3_client.put_object(
        Bucket=bucket,
        Key=key,
        Body=body.encode("utf-8"),
        ContentType=content_type,
        ServerSideEncryption="AES256",
    )


def read_location(location: str, s3_client: Optional[S3Client] = None) -> bytes:
    if location == STANDARD_STREAM:
        return sys.stdin.buffer.read()
    if is_s3_uri(location):
        return read_object(s3_client or get_s3_client(), location)
    return Path(location).read_bytes()


def write_location(location: str, body: str, content_type: str, s3_client: Optional[S3Client] = None) -> None:
    if location == STANDARD_STREAM:
        sys.stdout.write(body)
        sys.stdout.flush()
    elif is_s3_uri(location):
        write_object(s3_client or get_s3_client(), location, body, content_type)
    else:
        Path(location).write_text(body, encoding="utf-8")
