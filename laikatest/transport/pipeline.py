"""
Request pipeline

One request in, one parsed envelope or one typed error out:

1. transport failure / timeout   -> NetworkError
2. body is not a JSON object     -> NetworkError("Invalid JSON response")
3. status outside [200, 300)     -> ServiceError(status, payload)
4. success flag not true         -> ServiceError
5. otherwise                     -> envelope dict, verbatim

No retries. Callers decide what to do with a failure.
"""

import asyncio
import json
import time
from typing import Any, Dict, Optional

import httpx

from laikatest.core.config import USER_AGENT, ClientConfig
from laikatest.core.errors import NetworkError, ServiceError
from laikatest.core.logging import get_logger
from laikatest.transport.executor import RequestExecutor, TransportResponse

logger = get_logger(__name__)

TRANSPORT_ERRORS = (httpx.RequestError, asyncio.TimeoutError, OSError)


class RequestPipeline:
    """Builds, sends and classifies requests against the LaikaTest API"""

    def __init__(self, config: ClientConfig, executor: RequestExecutor):
        self._config = config
        self._executor = executor
        self._base_url = httpx.URL(config.base_url + "/")

    def build_url(self, path: str) -> str:
        """Absolute URL for a path; a leading slash is relative to the host root"""
        return str(self._base_url.join(path))

    def _get_headers(self) -> Dict[str, str]:
        """Headers sent with every request"""
        return {
            "Authorization": f"Bearer {self._config.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }

    async def request(
        self,
        method: str,
        path: str,
        json_body: Optional[Dict[str, Any]] = None,
        require_data: bool = False,
    ) -> Dict[str, Any]:
        """
        Execute one request and return the success envelope

        Args:
            method: HTTP method
            path: API path, optionally with a query string
            json_body: JSON request body
            require_data: also treat a missing ``data`` field as a ServiceError

        Returns:
            The parsed ``{success, data, meta?}`` envelope

        Raises:
            NetworkError: no usable response was received
            ServiceError: the service answered with an error or a bad envelope
        """
        url = self.build_url(path)
        log = logger.bind(method=method, path=path.split("?", 1)[0])
        timeout = self._config.timeout_seconds
        start_time = time.time()

        try:
            response = await asyncio.wait_for(
                self._executor.execute(
                    method,
                    url,
                    headers=self._get_headers(),
                    json=json_body,
                    timeout=timeout,
                ),
                timeout=timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            log.warning("request_timeout", timeout_ms=self._config.timeout_ms)
            raise NetworkError("Request timeout", e) from e
        except httpx.DecodingError as e:
            log.warning("request_invalid_body", error=str(e))
            raise NetworkError("Invalid JSON response", e) from e
        except TRANSPORT_ERRORS as e:
            log.warning("request_network_error", error=str(e), error_type=type(e).__name__)
            raise NetworkError("Network request failed", e) from e

        latency_ms = int((time.time() - start_time) * 1000)
        envelope = self._parse_envelope(response, log)

        if not 200 <= response.status_code < 300:
            message = envelope.get("error") or f"HTTP {response.status_code}"
            log.warning(
                "request_failed",
                status=response.status_code,
                error=message,
                latency_ms=latency_ms,
            )
            raise ServiceError(str(message), response.status_code, envelope)

        if envelope.get("success") is not True:
            log.warning("request_unsuccessful_envelope", status=response.status_code)
            raise ServiceError(
                str(envelope.get("error") or "Invalid response format"),
                response.status_code,
                envelope,
            )

        if require_data and envelope.get("data") is None:
            log.warning("request_missing_data", status=response.status_code)
            raise ServiceError("Invalid response format", response.status_code, envelope)

        log.debug("request_success", status=response.status_code, latency_ms=latency_ms)
        return envelope

    @staticmethod
    def _parse_envelope(response: TransportResponse, log) -> Dict[str, Any]:
        try:
            parsed = json.loads(response.text)
        except (json.JSONDecodeError, TypeError) as e:
            log.warning("request_invalid_json", status=response.status_code)
            raise NetworkError("Invalid JSON response", e) from e

        if not isinstance(parsed, dict):
            log.warning("request_invalid_envelope", status=response.status_code)
            raise NetworkError("Invalid response envelope")
        return parsed

    async def aclose(self) -> None:
        await self._executor.aclose()
