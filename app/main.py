"""
HTTP API for SplitMate

A thin FastAPI layer over the orchestrator and services. Routes translate
JSON to service calls and domain errors to status codes; no ledger rule
lives here.

AUTH: The caller is identified by the X-User-Id header (a registered
user's id). Session handling is out of scope; a gateway in front of this
service is expected to set the header.

ERRORS: Every failure is rendered as {"error": "..."} with a corrective
message. Raw exception text from storage or unexpected failures is never
shown to the user.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog
from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from splitmate import __version__
from splitmate.errors import (
    ExternalServiceError,
    ForbiddenError,
    InterpreterResponseError,
    InterpreterUnavailableError,
    NotFoundError,
    SplitMateError,
    ValidationError,
)
from splitmate.models.ledger import SplitParticipant, SplitType, User
from splitmate.orchestrator import AppComponents, create_app_components
from splitmate.services.splits import build_splits


logger = structlog.get_logger()


UNPARSEABLE_MESSAGE = (
    'Could not understand the command. '
    'Try: "John paid ₹500 for dinner with Alice and me"'
)
UNAVAILABLE_MESSAGE = (
    "The expense assistant is unavailable right now. "
    "Please check the model server and try again later."
)
GENERIC_MESSAGE = "Something went wrong. Please try again."


class UnauthorizedError(Exception):
    """No valid X-User-Id header."""
    pass


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CommandRequest(CamelModel):
    command: Any = None


class RegisterUserRequest(CamelModel):
    name: str
    email: str
    image_url: Optional[str] = None


class CreateGroupRequest(CamelModel):
    name: str
    description: str = ""
    member_ids: list[UUID] = Field(default_factory=list)


class ParticipantRequest(CamelModel):
    user_id: UUID
    percentage: Optional[Decimal] = None
    amount: Optional[Decimal] = None


class CreateExpenseRequest(CamelModel):
    description: str
    amount: Decimal
    category: Optional[str] = None
    date: Optional[datetime] = None
    payer_id: Optional[UUID] = None
    split_type: SplitType = SplitType.EQUAL
    participants: list[ParticipantRequest]
    group_id: Optional[UUID] = None


class RecordSettlementRequest(CamelModel):
    amount: Decimal
    received_by_user_id: UUID
    payer_id: Optional[UUID] = None
    note: Optional[str] = None
    date: Optional[datetime] = None
    group_id: Optional[UUID] = None
    related_expense_ids: list[UUID] = Field(default_factory=list)


# =============================================================================
# APP FACTORY
# =============================================================================

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _money(value: Decimal) -> float:
    return float(value)


def get_components(request: Request) -> AppComponents:
    return request.app.state.components


async def get_current_user(
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
) -> User:
    if not x_user_id:
        raise UnauthorizedError()
    try:
        user_id = UUID(x_user_id)
    except ValueError as e:
        raise UnauthorizedError() from e

    user = await get_components(request).users.get_user(user_id)
    if user is None:
        raise UnauthorizedError()
    return user


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(UnauthorizedError)
    async def handle_unauthorized(request: Request, exc: UnauthorizedError):
        logger.info("Rejected unauthenticated request", path=request.url.path)
        return _error(401, "Unauthorized. Please log in to continue.")

    @app.exception_handler(ValidationError)
    async def handle_validation(request: Request, exc: ValidationError):
        return _error(400, str(exc))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error(400, str(exc))

    @app.exception_handler(ForbiddenError)
    async def handle_forbidden(request: Request, exc: ForbiddenError):
        return _error(403, str(exc))

    @app.exception_handler(InterpreterResponseError)
    async def handle_unparseable(request: Request, exc: InterpreterResponseError):
        return _error(400, UNPARSEABLE_MESSAGE)

    @app.exception_handler(InterpreterUnavailableError)
    async def handle_unavailable(request: Request, exc: InterpreterUnavailableError):
        return _error(503, UNAVAILABLE_MESSAGE)

    @app.exception_handler(ExternalServiceError)
    async def handle_external(request: Request, exc: ExternalServiceError):
        return _error(503, UNAVAILABLE_MESSAGE)

    @app.exception_handler(SplitMateError)
    async def handle_domain(request: Request, exc: SplitMateError):
        await get_components(request).audit_logger.log_error(
            error_type=type(exc).__name__,
            error_message=str(exc),
            details={"path": request.url.path},
        )
        return _error(500, GENERIC_MESSAGE)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return _error(400, "Invalid request body")

    @app.exception_handler(PydanticValidationError)
    async def handle_model_validation(request: Request, exc: PydanticValidationError):
        first = exc.errors()[0]["msg"] if exc.errors() else "Invalid input"
        return _error(400, first)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error(
            "Unhandled error",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return _error(500, GENERIC_MESSAGE)


def create_app(components: Optional[AppComponents] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Tests pass their own components (in-memory storage, fake interpreter).
    """
    app = FastAPI(
        title="SplitMate API",
        description="Shared expenses, balances, group ledgers and natural-language commands.",
        version=__version__,
    )
    app.state.components = components or create_app_components()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    # -------------------------------------------------------------------------
    # Natural-language commands
    # -------------------------------------------------------------------------

    @app.get("/api/process-command")
    async def process_command_info():
        return {
            "message": "AI Expense Processing API",
            "status": "active",
            "endpoints": {
                "POST": "Process natural language expense commands",
                "examples": [
                    "John paid ₹1200 for groceries split between Alice, Bob and me",
                    "Add ₹500 for dinner with Sarah and me",
                ],
            },
        }

    @app.api_route("/api/process-command", methods=["PUT", "PATCH", "DELETE"])
    async def process_command_not_allowed():
        return _error(405, "Method not allowed")

    @app.post("/api/process-command")
    async def process_command(
        body: CommandRequest,
        user: User = Depends(get_current_user),
        components: AppComponents = Depends(get_components),
    ):
        result = await components.command_flow.process_command(body.command, user.id)
        return {
            "success": True,
            "message": result.message,
            "data": {
                "expenseId": str(result.expense_id),
                "amount": _money(result.amount),
                "reason": result.reason,
                "members": result.members,
                "payer": result.payer,
                "totalMembers": result.total_members,
                "splitAmount": _money(result.split_amount),
            },
        }

    # -------------------------------------------------------------------------
    # Users and groups
    # -------------------------------------------------------------------------

    @app.post("/api/users", status_code=201)
    async def register_user(
        body: RegisterUserRequest,
        components: AppComponents = Depends(get_components),
    ):
        user = await components.users.register_user(body.name, body.email, body.image_url)
        return user.model_dump(mode="json")

    @app.post("/api/groups", status_code=201)
    async def create_group(
        body: CreateGroupRequest,
        user: User = Depends(get_current_user),
        components: AppComponents = Depends(get_components),
    ):
        group = await components.groups.create_group(
            user.id, body.name, body.description, body.member_ids
        )
        return group.model_dump(mode="json")

    @app.get("/api/groups/{group_id}/financials")
    async def group_financials(
        group_id: UUID,
        user: User = Depends(get_current_user),
        components: AppComponents = Depends(get_components),
    ):
        financials = await components.aggregator.get_group_financials(user.id, group_id)
        return financials.model_dump(mode="json", by_alias=True)

    # -------------------------------------------------------------------------
    # Balances (read side: failures show as empty, never as errors)
    # -------------------------------------------------------------------------

    @app.get("/api/balances")
    async def list_balances(
        user: User = Depends(get_current_user),
        components: AppComponents = Depends(get_components),
    ):
        balances = await components.ledger.get_all()
        return [b.model_dump(mode="json") for b in balances]

    @app.get("/api/balances/me")
    async def my_balance(
        user: User = Depends(get_current_user),
        components: AppComponents = Depends(get_components),
    ):
        balance = await components.ledger.get_current_user_balance(user.id)
        return balance.model_dump(mode="json") if balance else None

    # -------------------------------------------------------------------------
    # Expenses and settlements
    # -------------------------------------------------------------------------

    @app.post("/api/expenses", status_code=201)
    async def create_expense(
        body: CreateExpenseRequest,
        user: User = Depends(get_current_user),
        components: AppComponents = Depends(get_components),
    ):
        payer_id = body.payer_id or user.id
        splits = build_splits(
            body.amount,
            body.split_type,
            [SplitParticipant(**p.model_dump()) for p in body.participants],
            payer_id,
        )
        expense_id = await components.expenses.create_expense(
            acting_user_id=user.id,
            description=body.description,
            amount=body.amount,
            payer_id=payer_id,
            splits=splits,
            category=body.category,
            date=body.date,
            split_type=body.split_type,
            group_id=body.group_id,
        )
        return {"success": True, "expenseId": str(expense_id)}

    @app.delete("/api/expenses/{expense_id}")
    async def delete_expense(
        expense_id: UUID,
        user: User = Depends(get_current_user),
        components: AppComponents = Depends(get_components),
    ):
        await components.expenses.delete_expense(user.id, expense_id)
        return {"success": True}

    @app.get("/api/expenses/with/{other_user_id}")
    async def expenses_between_users(
        other_user_id: UUID,
        user: User = Depends(get_current_user),
        components: AppComponents = Depends(get_components),
    ):
        summary = await components.expenses.get_expenses_between_users(user.id, other_user_id)
        return summary.model_dump(mode="json")

    @app.post("/api/settlements", status_code=201)
    async def record_settlement(
        body: RecordSettlementRequest,
        user: User = Depends(get_current_user),
        components: AppComponents = Depends(get_components),
    ):
        settlement = await components.settlements.record_settlement(
            acting_user_id=user.id,
            amount=body.amount,
            payer_id=body.payer_id or user.id,
            received_by_user_id=body.received_by_user_id,
            note=body.note,
            date=body.date,
            group_id=body.group_id,
            related_expense_ids=body.related_expense_ids,
        )
        return settlement.model_dump(mode="json")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
