"""HTTP API for the expense workflow."""

from expense_workflow.api.app import create_app

__all__ = ["create_app"]
