"""Scout data models — product records, jobs, batches and Synapse events."""

from .batch import Batch, Job, JobStatus, overall_status
from .schemas import ProductRecord, ProductSourceInfo, ProductSummary

__all__ = [
    "Batch",
    "Job",
    "JobStatus",
    "overall_status",
    "ProductRecord",
    "ProductSourceInfo",
    "ProductSummary",
]
