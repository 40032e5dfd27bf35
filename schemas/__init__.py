"""
Pydantic schemas for the Sui JSON-RPC payloads.

Schemas:
    sui: Transaction block pages, object changes, object data and
        past-object lookups

Usage:
    from schemas.sui import ObjectChange, TransactionBlockPage, PastObjectResponse
"""

__all__ = [
    "ChangeType",
    "ObjectChange",
    "TransactionBlock",
    "TransactionBlockPage",
    "ObjectData",
    "ObjectDataOptions",
    "PastObjectRequest",
    "PastObjectResponse",
    "PastObjectStatus",
]
