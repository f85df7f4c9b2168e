"""fal.ai queue client."""

import logging
import time

import requests

from ..errors import PermanentRemoteError, TransientRemoteError

logger = logging.getLogger(__name__)


class FalClient:
    """Client for submitting image jobs to the fal.ai queue and reading their results."""

    def __init__(self, api_key: str, base_url: str = "https://queue.fal.run"):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    def _get_headers(self) -> dict:
        return {
            "Authorization": f"Key {self.api_key}",
            "Content-Type": "application/json",
        }

    def _request_with_retry(
        self,
        method: str,
        url: str,
        headers: dict,
        json: dict | None = None,
        max_retries: int = 5,
    ) -> requests.Response:
        """Make request with exponential backoff on 429 errors."""
        response = None
        for attempt in range(max_retries):
            if method == "POST":
                response = requests.post(url, json=json, headers=headers, timeout=30)
            else:
                response = requests.get(url, headers=headers, timeout=30)

            if response.status_code == 429:
                wait_time = 2 ** attempt
                logger.warning(f"fal.ai rate limited, retrying in {wait_time}s")
                time.sleep(wait_time)
                continue

            return response

        return response

    def submit(self, model_id: str, payload: dict) -> str:
        """
        Submit a job to the queue.

        Args:
            model_id: fal.ai model path, e.g. "fal-ai/birefnet/v2"
            payload: Model input (always includes image_url)

        Returns:
            Queue request id
        """
        url = f"{self.base_url}/{model_id}"

        try:
            response = self._request_with_retry("POST", url, self._get_headers(), json=payload)
        except requests.RequestException as e:
            raise PermanentRemoteError(f"fal.ai submission failed: {e}") from e

        if not response.ok:
            raise PermanentRemoteError(
                f"fal.ai error: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except requests.JSONDecodeError as e:
            raise PermanentRemoteError(f"Unparseable fal.ai submit response: {response.text[:200]}") from e

        request_id = data.get("request_id") if isinstance(data, dict) else None
        if not request_id:
            raise PermanentRemoteError("No request_id returned from fal.ai")

        logger.info(f"Queued {model_id} request {request_id}")
        return request_id

    def status(self, model_id: str, request_id: str) -> requests.Response:
        """Fetch the result endpoint for a request.

        The raw response is returned so the caller can classify status codes.
        Network failures are raised as TransientRemoteError.
        """
        url = f"{self.base_url}/{model_id}/requests/{request_id}"
        try:
            return requests.get(url, headers=self._get_headers(), timeout=30)
        except requests.RequestException as e:
            raise TransientRemoteError(f"fal.ai poll failed: {e}") from e
