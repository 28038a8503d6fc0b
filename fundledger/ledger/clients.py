"""Client lookups."""

from fundledger.errors import NotFoundError
from fundledger.ledger.types import Client
from fundledger.money import from_epoch, to_decimal
from fundledger.persistence.repository import Repository


def client_from_row(row: dict) -> Client:
    return Client(
        client_id=row["client_id"],
        name=row["name"],
        email=row.get("email"),
        bot_id=row.get("bot_id"),
        profit_share_pct=to_decimal(row["profit_share_pct"]),
        carried_loss=to_decimal(row["carried_loss"]),
        initial_capital=to_decimal(row["initial_capital"]),
        fiat_currency=row.get("fiat_currency"),
        is_active=bool(row["is_active"]),
        created_at=from_epoch(row["created_at"]),
    )


class ClientDirectory:
    """Resolves clients by id or email."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    async def get(self, client_id: str) -> Client:
        row = await self._repo.get_client(client_id)
        if row is None:
            raise NotFoundError(f"Client not found: {client_id}", code="CLIENT_NOT_FOUND")
        return client_from_row(row)

    async def get_by_email(self, email: str) -> Client:
        row = await self._repo.get_client_by_email(email)
        if row is None:
            raise NotFoundError(f"Client not found: {email}", code="CLIENT_NOT_FOUND")
        return client_from_row(row)

    async def active(self) -> list[Client]:
        return [client_from_row(row) for row in await self._repo.get_active_clients()]
