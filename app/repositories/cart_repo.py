# app/repositories/cart_repo.py
from datetime import datetime, timezone

from sqlmodel import Session

from app.models.cart import CartSnapshot


class InMemoryCartBackend:
    """
    Dict-backed snapshot storage.

    Used for tests and for scripts that do not need a database.
    """

    def __init__(self) -> None:
        self._snapshots: dict[str, str] = {}

    def read(self, key: str) -> str | None:
        return self._snapshots.get(key)

    def write(self, key: str, payload: str) -> None:
        self._snapshots[key] = payload


class DatabaseCartBackend:
    """
    Snapshot storage in the cart_snapshots table.

    Each write commits immediately, so the snapshot survives even if the
    rest of the request fails afterwards.
    """

    def __init__(self, session: Session):
        self.session = session

    def read(self, key: str) -> str | None:
        row = self.session.get(CartSnapshot, key)
        return row.payload if row else None

    def write(self, key: str, payload: str) -> None:
        row = self.session.get(CartSnapshot, key)
        if row is None:
            row = CartSnapshot(key=key, payload=payload)
        else:
            row.payload = payload
            row.updated_at = datetime.now(timezone.utc)
        self.session.add(row)
        self.session.commit()
