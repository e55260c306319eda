"""
Pydantic schemas for data validation and serialization.

Schemas:
    records: Normalized records produced from raw remote records
    api: Trigger parameters and endpoint request/response schemas

Normalized records keep every non-key field optional: None means the
remote system did not send the value, and such fields are never written
over stored data.

Usage:
    from schemas.records import OrderRecord, OrderDetail, ProductRecord
    from schemas.api import SyncParams, JobResult
"""

__all__ = [
    "OrderRecord",
    "OrderItemRecord",
    "OrderDetail",
    "CustomerRecord",
    "AddressRecord",
    "ProductRecord",
    "SyncParams",
    "UntilDoneParams",
    "JobResult",
    "HealthCheckResponse",
    "StatsResponse",
]
