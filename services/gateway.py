"""HTTP client for the gateway service.

The gateway aggregates document storage and the search backend. Every call
resolves the gateway address through the service locator, so a moved
gateway is picked up once the cached address expires.
"""

import asyncio
import json
import logging
from typing import Any, List, Optional, Protocol, Type

import aiohttp

from .discovery import ServiceLocator
from .errors import (
    DownloadDocumentContentError,
    DownloadDocumentsError,
    DownloadProjectDataError,
    GatewayUnavailableError,
    ReindexError,
    RemoveIndexError,
    UploadDocumentError,
)
from .models import DocumentRef, IndexRecord, ProjectMetadata

logger = logging.getLogger(__name__)


class GatewayClient(Protocol):
    async def get_project(
        self, project_id: str, authorization: Optional[str] = None
    ) -> ProjectMetadata: ...

    async def list_documents(
        self, project_id: str, branch_name: str, authorization: Optional[str] = None
    ) -> List[DocumentRef]: ...

    async def get_document_content(
        self,
        project_id: str,
        branch_name: str,
        document: DocumentRef,
        authorization: Optional[str] = None,
    ) -> str: ...

    async def remove_index(
        self, project_id: str, branch_name: str, authorization: Optional[str] = None
    ) -> None: ...

    async def upload_index(
        self,
        project_id: str,
        branch_name: str,
        record: IndexRecord,
        authorization: Optional[str] = None,
    ) -> None: ...


def encode_document_uri(uri: str) -> str:
    """Document paths travel as a single URL segment with ``/`` replaced by ``:``."""
    return uri.replace("/", ":")


class HttpGatewayClient:
    """GatewayClient talking to the gateway over HTTP with aiohttp."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        locator: ServiceLocator,
        secure_token: str = "",
    ):
        self.session = session
        self.locator = locator
        self.secure_token = secure_token

    def _headers(self, authorization: Optional[str]) -> dict:
        # Inbound credentials win; the service token is only a fallback.
        if authorization:
            return {"Authorization": authorization}
        return {"Authorization": f"SecureToken {self.secure_token}"}

    async def _url(self, path: str) -> str:
        address = await self.locator.resolve_gateway_address()
        if not address:
            raise GatewayUnavailableError("Microservice with tag 'gateway' service is not running!")
        return f"{address.rstrip('/')}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        path: str,
        error_type: Type[ReindexError],
        action: str,
        authorization: Optional[str] = None,
        payload: Any = None,
    ) -> str:
        url = await self._url(path)
        data = json.dumps(payload) if payload is not None else None
        headers = self._headers(authorization)
        if data is not None:
            headers["Content-Type"] = "application/json"

        try:
            async with self.session.request(method, url, data=data, headers=headers) as response:
                body = await response.text()
                if response.status >= 400:
                    raise error_type(
                        f"{action} wasn't successful. Status code: {response.status}. "
                        f"Response message: '{body}'.",
                        status_code=response.status,
                        response_body=body,
                    )
                return body
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise error_type(f"{action} wasn't successful. Request failed: {e!r}") from e

    async def get_project(
        self, project_id: str, authorization: Optional[str] = None
    ) -> ProjectMetadata:
        body = await self._request(
            "GET",
            f"projects/{project_id}",
            DownloadProjectDataError,
            "Downloading project data",
            authorization,
        )
        try:
            return ProjectMetadata.model_validate_json(body)
        except ValueError as e:
            raise DownloadProjectDataError(f"Project data is malformed: {e}", response_body=body) from e

    async def list_documents(
        self, project_id: str, branch_name: str, authorization: Optional[str] = None
    ) -> List[DocumentRef]:
        body = await self._request(
            "GET",
            f"projects/{project_id}/branches/{branch_name}/documents",
            DownloadDocumentsError,
            "Downloading documents list",
            authorization,
        )
        try:
            return [DocumentRef.model_validate(item) for item in json.loads(body)]
        except (ValueError, TypeError) as e:
            raise DownloadDocumentsError(f"Documents list is malformed: {e}", response_body=body) from e

    async def get_document_content(
        self,
        project_id: str,
        branch_name: str,
        document: DocumentRef,
        authorization: Optional[str] = None,
    ) -> str:
        encoded_uri = encode_document_uri(document.uri)
        return await self._request(
            "GET",
            f"projects/{project_id}/branches/{branch_name}/documents/content/{encoded_uri}",
            DownloadDocumentContentError,
            f"Downloading content of '{document.uri}'",
            authorization,
        )

    async def remove_index(
        self, project_id: str, branch_name: str, authorization: Optional[str] = None
    ) -> None:
        logger.info(f"Removing index. Project Id: {project_id}. Branch Name: {branch_name}.")
        await self._request(
            "DELETE",
            f"search/projects/{project_id}/branches/{branch_name}",
            RemoveIndexError,
            "Index removal",
            authorization,
        )

    async def upload_index(
        self,
        project_id: str,
        branch_name: str,
        record: IndexRecord,
        authorization: Optional[str] = None,
    ) -> None:
        await self._request(
            "POST",
            f"search/projects/{project_id}/branches/{branch_name}",
            UploadDocumentError,
            f"Uploading document '{record.url}'",
            authorization,
            payload=[record.to_payload()],
        )
