from sqlalchemy.orm import Session
from uuid import UUID

from app.common.exceptions import NotFoundError
from app.modules.clients.models import Client


class ClientValidator:
    """Helper to validate that a client belongs to the current organization"""

    def __init__(self, db: Session):
        self.db = db

    def require_client(self, client_id: UUID, organization_id: UUID) -> Client:
        client = self.db.query(Client).filter(
            Client.id == client_id,
            Client.organization_id == organization_id
        ).first()
        if not client:
            raise NotFoundError("Client")
        return client
