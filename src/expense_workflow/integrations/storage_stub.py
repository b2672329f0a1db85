"""In-memory receipt storage for local development and testing.

Replace with an S3-compatible adapter (presigned PUT plus batch delete)
for production.
"""

from __future__ import annotations

import secrets
from uuid import UUID

from expense_workflow.integrations.base import UploadTarget


class InMemoryReceiptStorage:
    """Stub object storage keyed by ``<owner-id>/<random-hex>.<ext>``."""

    def __init__(
        self,
        public_url: str = "https://receipts.example.invalid",
        ttl_seconds: int = 600,
        fail_deletes: bool = False,
    ):
        """Initialize stub storage.

        Args:
            public_url: Base URL prepended to object keys.
            ttl_seconds: Lifetime reported for issued upload URLs.
            fail_deletes: If True, delete() raises, simulating an outage.
        """
        self.public_url = public_url.rstrip("/")
        self.ttl_seconds = ttl_seconds
        self.fail_deletes = fail_deletes
        self.objects: set[str] = set()
        self.deleted: list[str] = []

    def issue_upload_target(self, content_type: str, owner_id: UUID) -> UploadTarget:
        extension = content_type.split("/")[1] if "/" in content_type else ""
        key = f"{owner_id}/{secrets.token_hex(16)}.{extension or 'bin'}"
        self.objects.add(key)
        return UploadTarget(
            upload_url=f"{self.public_url}/{key}?upload-token={secrets.token_urlsafe(16)}",
            public_reference=f"{self.public_url}/{key}",
            content_type=content_type,
            expires_in_seconds=self.ttl_seconds,
        )

    def key_for(self, reference: str) -> str | None:
        """Object key for a public reference, or None if it is foreign."""
        prefix = f"{self.public_url}/"
        if not reference.startswith(prefix):
            return None
        return reference[len(prefix):] or None

    def delete(self, references: list[str]) -> None:
        if self.fail_deletes:
            raise ConnectionError("receipt storage unavailable")
        for reference in references:
            key = self.key_for(reference)
            if key is None:
                continue
            self.objects.discard(key)
            self.deleted.append(reference)
