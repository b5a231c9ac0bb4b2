"""Lease request persistence."""

from lease_agent.repositories.lease_request_store import InMemoryLeaseRequestStore, LeaseRequestStore

__all__ = ["InMemoryLeaseRequestStore", "LeaseRequestStore"]
