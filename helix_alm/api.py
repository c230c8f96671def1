# helix_alm/api.py

import asyncio
import ssl
from typing import Iterable, List, Optional, Union
from urllib.parse import urljoin, urlsplit

import aiohttp

from . import codec
from .auth import Credentials, build_bearer_header
from .config import ClientConfig
from .exceptions import (
    ApiError,
    CodecError,
    HelixALMAPIError,
    HttpStatusError,
    MissingItemIdError,
    PartialUpdateError,
    TransportError,
)
from .logger import logger
from .models import (
    AccessToken,
    ErrorResponse,
    Event,
    EventContainer,
    GenerateTestRunParams,
    Issue,
    IssuesList,
    PagingLink,
    ProjectList,
    UpdateEventsResponse,
    UpdateIssuesResponse,
    UpdateResponse,
    UpdateTestRunsResponse,
)
from .utils import comma_list, path_segment


def _host_of(url):
    parts = urlsplit(url)
    port = parts.port or (443 if parts.scheme == "https" else 80)
    return (parts.hostname or "").lower(), port


def _query_value(value):
    if isinstance(value, bool):
        return str(value).lower()
    return value


class HelixALMAPI:
    """
    Async client for the Helix ALM REST API.

    One instance holds one ``aiohttp`` session and may serve any number of
    concurrent calls. Credentials and access tokens are passed on every
    call, so the same instance can be shared by sessions of different users.
    """

    def __init__(self, config: Optional[ClientConfig] = None):
        self.config = config or ClientConfig.from_env()
        self.base_url = self.config.base_url
        self.session = None
        self._host_context = None

    async def open(self):
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                headers=self.config.headers,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
            )
        return self

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None

    async def __aenter__(self):
        return await self.open()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _ssl_for(self, url):
        """Certificate check for ``url``; the TLS policy covers the API host only."""
        tls = self.config.tls
        if tls.is_default or _host_of(url) != self.config.host:
            return True
        if tls.fingerprint:
            return aiohttp.Fingerprint(bytes.fromhex(tls.fingerprint))
        if self._host_context is None:
            self._host_context = ssl.create_default_context(cafile=tls.ca_file)
        return self._host_context

    async def _request(
        self,
        method,
        endpoint,
        auth_header,
        data=None,
        params=None,
        response_type=None,
        url=None,
        timeout=None,
    ):
        if not url:
            url = urljoin(self.base_url, endpoint)
        if self.session is None:
            await self.open()

        headers = {"Authorization": auth_header, "Accept": "application/json"}
        body = None
        if data is not None:
            body = codec.encode(data)
            headers["Content-Type"] = "application/json; charset=utf-8"

        query = {
            key: _query_value(value)
            for key, value in (params or {}).items()
            if value is not None
        }
        options = {}
        if timeout is not None:
            options["timeout"] = aiohttp.ClientTimeout(total=timeout)

        logger.debug(f"{method} {url} params={query}")
        try:
            async with self.session.request(
                method,
                url,
                data=body,
                params=query or None,
                headers=headers,
                ssl=self._ssl_for(url),
                **options,
            ) as response:
                status = response.status
                payload = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError, ssl.SSLError) as e:
            logger.error(f"Request failed: {method} {url}: {e!r}")
            raise TransportError(f"Request failed: {method} {url}: {e!r}", url=url) from e

        logger.debug(f"{method} {url} -> {status} ({len(payload)} bytes)")

        if not 200 <= status < 300:
            error = self._error_from_response(status, payload)
            logger.error(f"{method} {url} failed: {error}")
            raise error

        if response_type is None:
            return None
        if not payload.strip():
            return response_type()

        try:
            result = codec.decode(payload, response_type)
        except CodecError as e:
            logger.error(f"Cannot decode {response_type.__name__} from {url}: {e}")
            raise

        if isinstance(result, UpdateResponse) and result.errors:
            error = PartialUpdateError(result.errors, response=result, status_code=status)
            logger.error(f"{method} {url}: {error}")
            raise error
        return result

    @staticmethod
    def _error_from_response(status, payload) -> HelixALMAPIError:
        """Map a non-2xx response to ``ApiError`` if it carries an envelope."""
        text = payload.decode("utf-8", errors="replace")
        try:
            data = codec.loads(payload) if payload.strip() else None
            errors = []
            if isinstance(data, dict):
                if isinstance(data.get("errors"), list):
                    errors = [
                        codec.from_dict(entry, ErrorResponse) for entry in data["errors"]
                    ]
                if not errors and {"message", "code", "statusCode"} & data.keys():
                    errors = [codec.from_dict(data, ErrorResponse)]
        except CodecError:
            errors = []

        if errors and (errors[0].message or errors[0].code):
            primary = errors[0]
            return ApiError(
                primary.message,
                status_code=status,
                code=primary.code,
                error_element_path=primary.error_element_path,
                errors=errors,
            )
        return HttpStatusError(status, text)

    async def list_projects(self, credentials: Credentials) -> ProjectList:
        """Projects the user can access. Basic authentication."""
        return await self._request(
            "GET", "projects", credentials.basic_header(), response_type=ProjectList
        )

    async def get_token(self, project: str, credentials: Credentials) -> AccessToken:
        """Exchange user credentials for a project access token."""
        return await self._request(
            "GET",
            f"{path_segment(project)}/token",
            credentials.basic_header(),
            response_type=AccessToken,
        )

    async def list_issues(
        self,
        project: str,
        token: AccessToken,
        fields: Union[str, Iterable[str], None] = None,
        expand: Union[str, Iterable[str], None] = None,
        **params,
    ) -> IssuesList:
        """
        One page of issues.

        :param fields: Field labels to return, e.g. ``["Summary", "Priority"]``
        :param expand: Sub-collections to include, e.g. ``"foundByRecords"``
        :param params: Other query parameters such as ``page`` or ``pageLimit``
        """
        params["fields"] = comma_list(fields)
        params["expand"] = comma_list(expand)
        return await self._request(
            "GET",
            f"{path_segment(project)}/issues",
            build_bearer_header(token),
            params=params,
            response_type=IssuesList,
        )

    async def get_issue(
        self,
        project: str,
        token: AccessToken,
        issue_id: int,
        fields: Union[str, Iterable[str], None] = None,
        expand: Union[str, Iterable[str], None] = None,
    ) -> Issue:
        return await self._request(
            "GET",
            f"{path_segment(project)}/issues/{int(issue_id)}",
            build_bearer_header(token),
            params={"fields": comma_list(fields), "expand": comma_list(expand)},
            response_type=Issue,
        )

    async def save_issue(
        self, project: str, token: AccessToken, issue: Issue
    ) -> UpdateIssuesResponse:
        """Save the fields present on ``issue``; fields left out are not touched."""
        if not issue.id:
            raise MissingItemIdError("Issue has no id; fetch it before saving")
        return await self._request(
            "PUT",
            f"{path_segment(project)}/issues/{issue.id}",
            build_bearer_header(token),
            data=issue,
            response_type=UpdateIssuesResponse,
        )

    async def add_events(
        self,
        project: str,
        token: AccessToken,
        issue_id: int,
        events: Union[EventContainer, List[Event]],
    ) -> UpdateEventsResponse:
        """Post workflow events (Comment, Assign, Fix, ...) to an issue."""
        if not isinstance(events, EventContainer):
            events = EventContainer(events_data=list(events))
        return await self._request(
            "POST",
            f"{path_segment(project)}/issues/{int(issue_id)}/events",
            build_bearer_header(token),
            data=events,
            response_type=UpdateEventsResponse,
        )

    async def generate_test_runs(
        self, project: str, token: AccessToken, params: GenerateTestRunParams
    ) -> UpdateTestRunsResponse:
        return await self._request(
            "POST",
            f"{path_segment(project)}/testruns/generate",
            build_bearer_header(token),
            data=params,
            response_type=UpdateTestRunsResponse,
        )

    async def follow_paging_link(
        self, link: PagingLink, token: AccessToken, response_type=IssuesList
    ):
        """Fetch the page a ``Paging`` link points at (next, prev, first, last)."""
        return await self._request(
            link.method or "GET",
            link.href,
            build_bearer_header(token),
            response_type=response_type,
            url=urljoin(self.base_url, link.href),
        )
