"""Delivery backend adapters — pluggable store and change feed.

The application root builds one backend with ``create_backend()`` and passes
it to every live view and route; nothing here holds module-level state.
"""

import os

from delivery.backend.port import DeliveryBackend


def create_backend(adapter: str | None = None) -> DeliveryBackend:
    """Build the configured backend adapter.

    Uses the domain-backed adapter by default. Set ``DELIVERY_BACKEND=fake``
    for the in-memory fake.
    """
    adapter = adapter or os.environ.get("DELIVERY_BACKEND", "domain")
    if adapter == "domain":
        from delivery.backend.domain_adapter import DomainBackend

        return DomainBackend()
    if adapter == "fake":
        from delivery.backend.fake_adapter import FakeBackend

        return FakeBackend()
    raise ValueError(f"Unknown delivery backend: {adapter}")
