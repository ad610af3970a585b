"""HTTP client for the FHIR server under test."""

import json
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional

import httpx

from fhir_conformance.config import DEFAULT_HTTP_TIMEOUT, FHIR_JSON_MIME
from fhir_conformance.exceptions import ServerRequestError
from fhir_conformance.logging_config import get_logger

logger = get_logger("client")


@dataclass
class Reply:
    """One HTTP exchange with the server, with the body parsed when it is JSON."""

    status_code: int
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    resource: Optional[Dict[str, Any]] = None
    url: str = ""

    @classmethod
    def from_response(cls, response: httpx.Response) -> "Reply":
        resource = None
        if response.content:
            try:
                parsed = json.loads(response.text)
            except ValueError:
                parsed = None
            if isinstance(parsed, dict):
                resource = parsed
        return cls(
            status_code=response.status_code,
            body=response.text,
            headers=dict(response.headers),
            resource=resource,
            url=str(response.request.url),
        )


class FHIRClient:
    """Synchronous FHIR REST client with a switchable bearer credential.

    The credential can be dropped for a single request with
    :meth:`without_credentials`; the runner wraps every test case in
    :meth:`preserve_credentials` so no body can leak a changed mode into
    the next one.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._http = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": FHIR_JSON_MIME},
        )

    def __enter__(self) -> "FHIRClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    # -- credential mode --------------------------------------------------

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def has_credential(self) -> bool:
        return bool(self._token)

    def use_credential(self, token: str) -> None:
        self._token = token

    def use_no_credential(self) -> None:
        self._token = None

    @contextmanager
    def without_credentials(self) -> Iterator["FHIRClient"]:
        """Issue requests unauthenticated inside the block."""
        with self.preserve_credentials():
            self.use_no_credential()
            yield self

    @contextmanager
    def preserve_credentials(self) -> Iterator["FHIRClient"]:
        """Restore the credential in effect at entry, however the block exits."""
        saved = self._token
        try:
            yield self
        finally:
            if self._token != saved:
                logger.debug("Restoring credential mode after block")
            self._token = saved

    # -- interactions -----------------------------------------------------

    def read(self, kind: str, resource_id: str) -> Reply:
        return self._get(f"/{kind}/{resource_id}")

    def search(self, kind: str, params: Optional[Mapping[str, Any]] = None) -> Reply:
        return self._get(f"/{kind}", params=dict(params or {}))

    def vread(self, kind: str, resource_id: str, version_id: str) -> Reply:
        return self._get(f"/{kind}/{resource_id}/_history/{version_id}")

    def history(self, kind: str, resource_id: str) -> Reply:
        return self._get(f"/{kind}/{resource_id}/_history")

    def conformance(self) -> Reply:
        return self._get("/metadata")

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Reply:
        headers = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        try:
            response = self._http.get(path, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(
                f"GET {path} failed: {e}",
                extra={"path": path, "error": str(e)},
            )
            raise ServerRequestError(f"GET {path} failed: {e}") from e
        logger.debug(
            f"GET {response.request.url} -> {response.status_code}",
            extra={"path": path, "status_code": response.status_code},
        )
        return Reply.from_response(response)
