"""Exception types shared by the pipeline and its external collaborators."""

from __future__ import annotations


class DuplicateProductInBatch(ValueError):
    """Two selections in one launch request name the same product."""

    def __init__(self, product_name: str) -> None:
        super().__init__(f"Product {product_name!r} appears more than once in the batch request")
        self.product_name = product_name


class InvalidJobTransition(RuntimeError):
    """A job was asked to move to a status its state machine does not allow."""


class ResearchBackendError(RuntimeError):
    """Discovery, identification or research call failed upstream."""


class ExportError(RuntimeError):
    """Appending records to the external spreadsheet mirror failed."""
