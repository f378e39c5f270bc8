"""Image host client - validated photo uploads for waypoints.

Files are checked client-side before any request:
- MIME type must start with "image/"
- Size must not exceed ImageConfig.MAX_BYTES (10 MB)

A TransportFailure is retried once after a short delay (tenacity). Any other
failure, including Unauthenticated, surfaces immediately.
"""

import logging

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from waypoint_survey.constants import ImageConfig, RemoteConfig
from waypoint_survey.core.remote_store import RemoteStore, raise_for_status
from waypoint_survey.errors import TransportFailure, ValidationRejected

logger = logging.getLogger(__name__)


def validate_image(content_type: str | None, size_bytes: int) -> None:
    """Reject non-image or oversized files.

    Raises:
        ValidationRejected: With field="image" and a user-facing message.
    """
    if not content_type or not content_type.startswith(ImageConfig.MIME_PREFIX):
        raise ValidationRejected(
            message="Only image files are allowed",
            field="image",
            context={"content_type": content_type},
        )
    if size_bytes > ImageConfig.MAX_BYTES:
        max_mb = ImageConfig.MAX_BYTES // (1024 * 1024)
        raise ValidationRejected(
            message=f"Image is too large. Max {max_mb}MB allowed",
            field="image",
            context={"size_bytes": size_bytes},
        )


class ImageHost:
    """Uploads images and returns their hosted URL.

    Shares the Remote Store's HTTP client and auth headers.

    Example:
        host = ImageHost(store=store)
        url = await host.upload(data=png_bytes, content_type="image/png", filename="site.png")
    """

    def __init__(
        self,
        store: RemoteStore,
        max_attempts: int = ImageConfig.MAX_ATTEMPTS,
        retry_delay_s: float = ImageConfig.RETRY_DELAY_S,
    ) -> None:
        self.store = store
        self.max_attempts = max_attempts
        self.retry_delay_s = retry_delay_s

    async def upload(self, data: bytes, content_type: str | None, filename: str) -> str:
        """Validate and upload an image.

        Returns:
            The hosted image URL.

        Raises:
            ValidationRejected: Wrong type/oversize (no request sent) or rejected by server
            Unauthenticated: No valid session
            TransportFailure: Still failing after the automatic retry
        """
        validate_image(content_type=content_type, size_bytes=len(data))

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.retry_delay_s),
            retry=retry_if_exception_type(TransportFailure),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                url = await self._post(data=data, content_type=content_type, filename=filename)
        logger.info(f"[UPLOAD] Uploaded {filename} ({len(data)} bytes)")
        return url

    async def _post(self, data: bytes, content_type: str | None, filename: str) -> str:
        url = f"{self.store.api_url}{RemoteConfig.UPLOAD_PATH}"
        files = {ImageConfig.FORM_FIELD: (filename, data, content_type)}
        try:
            response = await self.store.client.post(url, files=files, headers=self.store.auth_headers())
        except httpx.TransportError as e:
            raise TransportFailure(
                message="Network error: Unable to reach upload server",
                context={"url": url, "error": str(e)},
            ) from e

        raise_for_status(response=response, action="POST upload")
        try:
            body = response.json()
            return str(body["image_url"])
        except (ValueError, KeyError, TypeError) as e:
            raise TransportFailure(
                message="Upload server returned an unreadable response",
                status_code=response.status_code,
            ) from e
