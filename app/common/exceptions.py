"""
Error taxonomy shared by the ledger, settlement, pricing and invoicing services.

Both classes are HTTPExceptions so they surface through FastAPI unchanged,
while services and tests can still catch them by business meaning.
"""
from fastapi import HTTPException, status


class LedgerError(HTTPException):
    """Base for business errors raised by the core services"""

    code = "LEDGER_ERROR"
    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(status_code=self.status_code_default, detail=message)
        self.message = message

    def __str__(self):
        return f"{self.code}: {self.message}"


class ValidationError(LedgerError):
    """Malformed input or a violated business rule"""

    code = "VALIDATION_ERROR"
    status_code_default = status.HTTP_400_BAD_REQUEST


class NotFoundError(LedgerError):
    """
    Missing entity, or one owned by another organization.

    Both cases produce the same message so foreign ids are indistinguishable
    from unknown ones.
    """

    code = "NOT_FOUND"
    status_code_default = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str):
        super().__init__(f"{entity} not found")
        self.entity = entity
