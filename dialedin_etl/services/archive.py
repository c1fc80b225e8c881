from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Optional

import boto3

from dialedin_etl.config import settings


logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/vnd.ms-excel"


@dataclass
class ArchiveResult:
    raw_file_url: Optional[str] = None
    s3_file_key: Optional[str] = None


class RawFileStore:
    """Primary copy of every uploaded file, addressable by a public URL."""

    def __init__(self) -> None:
        self.bucket = settings.archive_bucket
        self.client = (
            boto3.client("s3", region_name=settings.aws_region, endpoint_url=settings.archive_endpoint_url)
            if self.bucket
            else None
        )

    def upload(self, data: bytes, report_date: date, report_type: str, filename: str) -> Optional[str]:
        if not self.client or not self.bucket:
            return None
        path = f"raw/{report_date.isoformat()}/{int(time.time() * 1000)}_{filename}"
        try:
            self.client.put_object(Bucket=self.bucket, Key=path, Body=data, ContentType=CONTENT_TYPE)
        except Exception:
            logger.exception("raw file upload failed", extra={"file_name": filename, "report_type": report_type})
            return None
        base = settings.archive_public_base_url or f"https://{self.bucket}.s3.amazonaws.com"
        return f"{base.rstrip('/')}/{path}"


class S3Archive:
    """Long-term archive keyed reports/{date}/{type}/{timestamp}_{filename}."""

    def __init__(self) -> None:
        self.bucket = settings.s3_bucket
        self.client = boto3.client("s3", region_name=settings.aws_region) if self.bucket and settings.aws_region else None

    def upload(self, data: bytes, report_date: date, report_type: str, filename: str) -> Optional[str]:
        if not self.client or not self.bucket:
            return None
        key = f"reports/{report_date.isoformat()}/{report_type}/{int(time.time() * 1000)}_{filename}"
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=CONTENT_TYPE,
                Metadata={
                    "report-type": report_type,
                    "report-date": report_date.isoformat(),
                    "original-filename": filename,
                },
            )
        except Exception:
            logger.warning(
                "s3 archive upload failed (non-blocking)",
                exc_info=True,
                extra={"file_name": filename, "report_type": report_type},
            )
            return None
        return key


class ArchiveService:
    def __init__(self, primary=None, secondary=None) -> None:
        self.primary = primary if primary is not None else RawFileStore()
        self.secondary = secondary if secondary is not None else S3Archive()

    async def archive(self, data: bytes, report_date: date, report_type: str, filename: str) -> ArchiveResult:
        """Both uploads run concurrently; a failure only leaves its reference empty."""
        outcomes = await asyncio.gather(
            asyncio.to_thread(self.primary.upload, data, report_date, report_type, filename),
            asyncio.to_thread(self.secondary.upload, data, report_date, report_type, filename),
            return_exceptions=True,
        )
        refs = []
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                logger.error(
                    "archive sink raised",
                    exc_info=outcome,
                    extra={"file_name": filename, "report_type": report_type},
                )
                refs.append(None)
            else:
                refs.append(outcome)
        return ArchiveResult(raw_file_url=refs[0], s3_file_key=refs[1])
