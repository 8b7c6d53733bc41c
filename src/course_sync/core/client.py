import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import IO, Any

import requests

from ..config_schema import SourceConfig
from ..errors import NotFoundError, TransportError
from ..sync.models import ChangeAction, ObjectKind, RepositoryEntry

logger = logging.getLogger(__name__)

_CONNECT_TIMEOUT = 10


def _parse_tree_item(item: dict[str, Any]) -> RepositoryEntry:
    """Parse one item of an ``itemsbatch`` listing.

    Shape: ``{"path", "gitObjectType", "latestProcessedChange": {"commitId"}}``.
    """
    change = item.get("latestProcessedChange") or {}
    return RepositoryEntry(
        path=item["path"],
        object_kind=ObjectKind(item["gitObjectType"]),
        action=ChangeAction.ADD,
        revision_id=change.get("commitId"),
    )


def _parse_diff_change(change: dict[str, Any]) -> RepositoryEntry:
    """Parse one entry of a ``diffs/commits`` listing.

    Shape: ``{"item": {"path", "gitObjectType", "commitId"}, "changeType"}``.
    """
    item = change["item"]
    kind = item.get("gitObjectType") or (
        "tree" if item.get("isFolder") else "blob"
    )
    return RepositoryEntry(
        path=item["path"],
        object_kind=ObjectKind(kind),
        action=ChangeAction.parse(change.get("changeType")),
        revision_id=item.get("commitId"),
    )


class DevOpsClient:
    """Read-only client for an Azure DevOps Git repository REST API.

    Args:
        config: Source section of the unified config.  ``config.url`` is
            the repository API root (``.../_apis/git/repositories/<repo>``).
    """

    def __init__(self, config: SourceConfig):
        self.config = config
        self.base_url = (config.url or "").rstrip("/")
        self._thread_local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        """Session of the calling thread."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            session = self._create_session()
            self._thread_local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        # PAT authentication: empty user name, token as password
        session.auth = ("", self.config.token or "")
        return session

    def close(self) -> None:
        """Close every session opened by this client."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()

    def _request(
        self,
        method: str,
        resource: str,
        operation: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        stream: bool = False,
    ) -> requests.Response:
        """
        Send a request and fail with ``TransportError`` on any non-2xx.
        """
        url = f"{self.base_url}/{resource}"
        query = dict(params or {})
        query["api-version"] = self.config.api_version

        try:
            response = self._get_session().request(
                method,
                url,
                params=query,
                json=json,
                stream=stream,
                timeout=(_CONNECT_TIMEOUT, self.config.timeout),
            )
        except requests.RequestException as exc:
            raise TransportError(operation, str(exc)) from exc

        if not response.ok:
            status = response.status_code
            reason = response.reason or "request was not successful"
            response.close()
            if status == 404 and "path" in query:
                raise NotFoundError(query["path"])
            raise TransportError(operation, reason, status_code=status)

        return response

    @staticmethod
    def _json(response: requests.Response, operation: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                operation, f"response is not JSON: {exc}"
            ) from exc

    def get_latest_revision(self) -> str:
        """
        Return the id of the most recent commit.
        """
        operation = "resolve latest revision"
        params: dict[str, Any] = {"searchCriteria.$top": 1}
        if self.config.branch:
            params["searchCriteria.itemVersion.version"] = self.config.branch

        data = self._json(
            self._request("GET", "commits", operation, params=params),
            operation,
        )
        commits = data.get("value") or []
        if not commits:
            raise TransportError(operation, "repository has no commits")
        return str(commits[0]["commitId"])

    def list_full_tree(self, revision_id: str) -> list[RepositoryEntry]:
        """
        List every item of the repository at *revision_id*.
        """
        operation = "list full tree"
        body = {
            "itemDescriptors": [
                {
                    "path": "/",
                    "recursionLevel": "full",
                    "version": revision_id,
                    "versionType": "commit",
                }
            ],
            "latestProcessedChange": True,
        }
        data = self._json(
            self._request("POST", "itemsbatch", operation, json=body),
            operation,
        )
        try:
            items = data["value"][0]
            return [_parse_tree_item(item) for item in items]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise TransportError(
                operation, f"unexpected response shape: {exc!r}"
            ) from exc

    def list_diff(
        self, base_revision: str, target_revision: str
    ) -> list[RepositoryEntry]:
        """
        List changed items between two commits, following pagination.
        """
        operation = "list diff"
        page_size = self.config.page_size
        entries: list[RepositoryEntry] = []
        skip = 0

        while True:
            params = {
                "baseVersion": base_revision,
                "baseVersionType": "commit",
                "targetVersion": target_revision,
                "targetVersionType": "commit",
                "$top": page_size,
                "$skip": skip,
            }
            data = self._json(
                self._request(
                    "GET", "diffs/commits", operation, params=params
                ),
                operation,
            )
            try:
                changes = data["changes"]
                entries.extend(_parse_diff_change(c) for c in changes)
            except (KeyError, TypeError, ValueError) as exc:
                raise TransportError(
                    operation, f"unexpected response shape: {exc!r}"
                ) from exc

            logger.debug(
                "Diff page at offset %d returned %d changes", skip, len(changes)
            )
            if data.get("allChangesIncluded", True) or len(changes) < page_size:
                break
            skip += len(changes)

        return entries

    @staticmethod
    def _item_params(
        path: str, version: str | None, previous: bool
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"path": path}
        if version:
            params["versionDescriptor.version"] = version
            params["versionDescriptor.versionType"] = "commit"
        if previous:
            params["versionDescriptor.versionOptions"] = "previousChange"
        return params

    def get_content(
        self, path: str, previous: bool = False, version: str | None = None
    ) -> str:
        """
        Return the text content of *path*.

        Args:
            path: Repository-absolute path.
            previous: Read the content as of the previous change.
            version: Commit to read at; the default branch tip when omitted.

        Raises:
            NotFoundError: If the path does not exist.
            TransportError: On any other failure.
        """
        params = self._item_params(path, version, previous)
        response = self._request("GET", "items", "get content", params=params)
        try:
            return response.content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            logger.warning(
                "%s is not valid UTF-8 (%s); undecodable bytes are replaced "
                "with U+FFFD",
                path,
                exc.reason,
            )
            return response.content.decode("utf-8-sig", errors="replace")

    @contextmanager
    def stream_content(
        self, path: str, version: str | None = None
    ) -> Iterator[IO[bytes]]:
        """
        Yield a binary file object streaming the content of *path* at *version*.
        """
        response = self._request(
            "GET",
            "items",
            "stream content",
            params=self._item_params(path, version, previous=False),
            stream=True,
        )
        try:
            response.raw.decode_content = True
            yield response.raw
        finally:
            response.close()
