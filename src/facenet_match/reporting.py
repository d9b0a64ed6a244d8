"""Upload of match results to a remote endpoint."""

import logging
from typing import Any, Dict, Optional

import httpx

from .errors import ReportingError
from .types import MatchResult

logger = logging.getLogger(__name__)


class MatchReporter:
    """Posts match results as JSON or multipart form data."""

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize reporter.

        Args:
            url: Endpoint receiving the results
            timeout: Request timeout in seconds
            client: Pre-built HTTP client (one is created if None)
        """
        self.url = url
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    @staticmethod
    def build_payload(result: MatchResult, **extra: Any) -> Dict[str, Any]:
        """Payload fields for a result; ``extra`` fields are sent as-is."""
        payload = result.to_dict()
        payload.update(extra)
        return payload

    def send_json(self, result: MatchResult, **extra: Any) -> bytes:
        """POST the result as an application/json body.

        Returns:
            Response body

        Raises:
            ReportingError: Transport failure or non-2xx status
        """
        return self._post(json=self.build_payload(result, **extra))

    def send_form(self, result: MatchResult, **extra: Any) -> bytes:
        """POST the result as multipart/form-data fields.

        Returns:
            Response body

        Raises:
            ReportingError: Transport failure or non-2xx status
        """
        payload = self.build_payload(result, **extra)
        fields = {key: (None, ("" if value is None else str(value)).encode("utf-8"))
                  for key, value in payload.items()}
        return self._post(files=fields)

    def _post(self, **kwargs: Any) -> bytes:
        try:
            response = self._client.post(self.url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning(f"Result upload rejected with status {status}")
            raise ReportingError(f"HTTP error {status}", status_code=status) from e
        except httpx.HTTPError as e:
            logger.warning(f"Result upload failed: {e}")
            raise ReportingError(f"Result upload failed: {e}") from e

        logger.debug(f"Uploaded result to {self.url} ({response.status_code})")
        return response.content

    def close(self) -> None:
        """Close the underlying HTTP client if this reporter created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
