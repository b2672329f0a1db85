"""External collaborator contracts and development adapters."""

from expense_workflow.integrations.base import (
    ReceiptGuess,
    ReceiptRecognizer,
    ReceiptStorage,
    UploadTarget,
)
from expense_workflow.integrations.receipts import purge_receipts
from expense_workflow.integrations.storage_stub import InMemoryReceiptStorage

__all__ = [
    "InMemoryReceiptStorage",
    "ReceiptGuess",
    "ReceiptRecognizer",
    "ReceiptStorage",
    "UploadTarget",
    "purge_receipts",
]
