"""Bluesky session and posting over the AT Protocol XRPC HTTP API."""

import re
from datetime import UTC, datetime
from typing import Any

import requests

from .config import BlueskyConfig
from .logging_config import create_execution_logger
from .models import PostRef

DEFAULT_IMAGE_MIME = "image/jpeg"
POST_COLLECTION = "app.bsky.feed.post"

URL_RE = re.compile(r"https?://[^\s<>\"]+[^\s<>\".,;:!?)\]]")
HASHTAG_RE = re.compile(r"(?:^|\s)(#[^\d\s#][^\s#]*)")


def _byte_offset(text: str, char_index: int) -> int:
    return len(text[:char_index].encode("utf-8"))


def detect_facets(text: str) -> list[dict[str, Any]]:
    """Find links and hashtags in post text.

    Facet indices are UTF-8 byte offsets, as required by the record schema.
    """
    facets = []

    for match in URL_RE.finditer(text):
        facets.append(
            {
                "index": {
                    "byteStart": _byte_offset(text, match.start()),
                    "byteEnd": _byte_offset(text, match.end()),
                },
                "features": [
                    {"$type": "app.bsky.richtext.facet#link", "uri": match.group()}
                ],
            }
        )

    for match in HASHTAG_RE.finditer(text):
        tag = match.group(1).rstrip(".,;:!?")
        start = match.start(1)
        facets.append(
            {
                "index": {
                    "byteStart": _byte_offset(text, start),
                    "byteEnd": _byte_offset(text, start + len(tag)),
                },
                "features": [
                    {"$type": "app.bsky.richtext.facet#tag", "tag": tag[1:]}
                ],
            }
        )

    return facets


def image_embed(blob: dict[str, Any], alt_text: str) -> dict[str, Any]:
    return {
        "$type": "app.bsky.embed.images",
        "images": [{"alt": alt_text, "image": blob}],
    }


class BlueskySession:
    """Holds the login credentials and the current session tokens."""

    def __init__(
        self,
        config: BlueskyConfig,
        execution_id: str | None = None,
        session: requests.Session | None = None,
    ):
        """Initialize the session manager.

        Args:
            config: Account configuration
            execution_id: Execution ID for logging context
            session: Optional shared HTTP session
        """
        self.config = config
        self.logger = create_execution_logger("bluesky_session", execution_id)
        self.http = session or requests.Session()
        self.http.headers.update({"User-Agent": "Commons-POTD-Bot/1.0"})
        self.access_jwt: str | None = None
        self.refresh_jwt: str | None = None
        self.did: str | None = None
        self.handle: str | None = None

    @property
    def has_session(self) -> bool:
        return self.access_jwt is not None

    def _xrpc(self, method: str) -> str:
        return f"{self.config.service}/xrpc/{method}"

    def _auth_headers(self, token: str | None = None) -> dict[str, str]:
        return {"Authorization": f"Bearer {token or self.access_jwt}"}

    def _store_session(self, data: dict[str, Any]) -> None:
        try:
            self.access_jwt = data["accessJwt"]
            self.refresh_jwt = data["refreshJwt"]
            self.did = data["did"]
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed session response, missing {e}")
        self.handle = data.get("handle", self.handle)

    def login(self) -> None:
        """Create a new session with the account credentials.

        Raises:
            requests.RequestException: If the login request fails
        """
        self.logger.info(f"Logging in as {self.config.identifier}")
        response = self.http.post(
            self._xrpc("com.atproto.server.createSession"),
            json={
                "identifier": self.config.identifier,
                "password": self.config.password,
            },
            timeout=self.config.timeout,
        )
        response.raise_for_status()
        self._store_session(response.json())
        self.logger.info("Logged in", did=self.did, handle=self.handle)

    def refresh_session(self) -> None:
        """Exchange the refresh token for a new token pair."""
        self.logger.info("Refreshing session")
        response = self.http.post(
            self._xrpc("com.atproto.server.refreshSession"),
            headers=self._auth_headers(self.refresh_jwt),
            timeout=self.config.timeout,
        )
        response.raise_for_status()
        self._store_session(response.json())

    def is_active(self) -> bool:
        """Ask the server whether the current access token is still usable."""
        if not self.has_session:
            return False

        response = self.http.get(
            self._xrpc("com.atproto.server.getSession"),
            headers=self._auth_headers(),
            timeout=self.config.timeout,
        )
        if response.status_code in (400, 401):
            # ExpiredToken / InvalidToken
            return False
        response.raise_for_status()
        return response.json().get("active", True)

    def ensure_session(self) -> None:
        """Log in or refresh so that the next request is authenticated."""
        if not self.has_session:
            self.login()
            return

        if self.is_active():
            return

        try:
            self.refresh_session()
        except requests.HTTPError as e:
            self.logger.warning(f"Session refresh failed, logging in again: {e}")
            self.login()

    def upload_image(self, image_url: str) -> dict[str, Any]:
        """Download an image and upload it as a blob.

        Args:
            image_url: URL of the image to attach

        Returns:
            Blob reference to embed in a post

        Raises:
            requests.RequestException: If the download or upload fails
            ValueError: If the upload response has no blob
        """
        image_response = self.http.get(image_url, timeout=self.config.timeout)
        image_response.raise_for_status()
        mime_type = image_response.headers.get("Content-Type") or DEFAULT_IMAGE_MIME
        image_bytes = image_response.content
        self.logger.info(
            "Downloaded image",
            image_url=image_url,
            mime_type=mime_type,
            size=len(image_bytes),
        )

        response = self.http.post(
            self._xrpc("com.atproto.repo.uploadBlob"),
            data=image_bytes,
            headers={**self._auth_headers(), "Content-Type": mime_type},
            timeout=self.config.timeout,
        )
        response.raise_for_status()

        blob = response.json().get("blob")
        if not blob:
            raise ValueError("Upload response does not contain a blob")
        return blob

    def create_post(
        self,
        text: str,
        embed: dict[str, Any] | None = None,
        reply_root: PostRef | None = None,
        reply_parent: PostRef | None = None,
        tags: list[str] | None = None,
        langs: list[str] | None = None,
    ) -> PostRef:
        """Create a post record.

        Args:
            text: Post text
            embed: Optional embed (e.g. from ``image_embed``)
            reply_root: Thread root when posting a reply
            reply_parent: Direct parent when posting a reply
            tags: Extra hashtags stored outside the text
            langs: Language tags

        Returns:
            Reference to the created post
        """
        record: dict[str, Any] = {
            "$type": POST_COLLECTION,
            "text": text,
            "createdAt": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        }
        facets = detect_facets(text)
        if facets:
            record["facets"] = facets
        if tags:
            record["tags"] = tags
        if langs:
            record["langs"] = langs
        if embed:
            record["embed"] = embed
        if reply_parent:
            root = reply_root or reply_parent
            record["reply"] = {
                "root": root.as_dict(),
                "parent": reply_parent.as_dict(),
            }

        response = self.http.post(
            self._xrpc("com.atproto.repo.createRecord"),
            json={"repo": self.did, "collection": POST_COLLECTION, "record": record},
            headers=self._auth_headers(),
            timeout=self.config.timeout,
        )
        response.raise_for_status()
        data = response.json()

        try:
            post = PostRef(uri=data["uri"], cid=data["cid"])
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed createRecord response, missing {e}")

        self.logger.info("Posted", post_uri=post.uri, cid=post.cid)
        return post

    def logout(self) -> None:
        """Delete the server-side session."""
        if not self.has_session:
            return

        self.logger.info("Logging out")
        response = self.http.post(
            self._xrpc("com.atproto.server.deleteSession"),
            headers=self._auth_headers(self.refresh_jwt),
            timeout=self.config.timeout,
        )
        response.raise_for_status()
        self.access_jwt = None
        self.refresh_jwt = None
        self.logger.info("Logged out")
