import logging
from typing import Iterator, Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from auth import AuthService, verify_token
from config import Settings, get_settings
from database import Base, create_db_engine, make_session_factory, session_scope
from errors import FinanceError, InternalInconsistencyError, ValidationError
from models import TransactionType, User
from money import to_cents
from periods import resolve_range
from repository import LedgerRepository, TransactionFilters
from schemas import (
    BudgetAnalysisOut,
    BudgetIn,
    BudgetOut,
    BudgetPayload,
    CategoryOut,
    DashboardOut,
    LoginIn,
    RegisterIn,
    TransactionIn,
    TransactionOut,
    TransactionPayload,
)
from services import (
    BudgetService,
    CategoryService,
    DashboardService,
    TransactionService,
)

logger = logging.getLogger(__name__)


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_repo(db: Session = Depends(get_db)) -> LedgerRepository:
    return LedgerRepository(db)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def current_user_id(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_app_settings),
) -> int:
    token = None
    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer":
            token = value.strip()
    return verify_token(settings, token)


def user_payload(user: User) -> dict[str, object]:
    return {"id": user.id, "email": user.email, "fullName": user.full_name}


def transaction_in(payload: TransactionPayload) -> TransactionIn:
    return TransactionIn(
        date=payload.date,
        type=payload.type,
        amount_cents=to_cents(payload.amount),
        category_id=payload.category_id,
        description=payload.description,
    )


def describe_validation_errors(exc: RequestValidationError) -> str:
    messages = []
    for err in exc.errors():
        # drop the leading "body" / "query" segment
        field = ".".join(str(part) for part in err["loc"][1:])
        messages.append(f"{field}: {err['msg']}" if field else err["msg"])
    return "; ".join(messages)


def _parse_type(value: Optional[str]) -> Optional[TransactionType]:
    if not value:
        return None
    try:
        return TransactionType(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown transaction type: {value}") from exc


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    engine = create_db_engine(settings)
    Base.metadata.create_all(engine)
    session_factory = make_session_factory(engine)
    with session_scope(session_factory) as session:
        CategoryService(LedgerRepository(session)).seed_defaults()

    app = FastAPI(title="Finance Tracker")
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory

    @app.exception_handler(FinanceError)
    async def finance_error_handler(request: Request, exc: FinanceError):
        if isinstance(exc, InternalInconsistencyError):
            logger.error(f"internal_inconsistency: path={request.url.path} detail={exc}")
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=ValidationError.status_code,
            content={"error": describe_validation_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"unhandled_error: method={request.method} path={request.url.path}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/")
    def index():
        return {
            "message": "Finance Tracker API",
            "endpoints": {
                "auth": "/api/auth",
                "transactions": "/api/transactions",
                "categories": "/api/categories",
                "dashboard": "/api/dashboard",
                "budgets": "/api/budgets",
            },
        }

    @app.post("/api/auth/register", status_code=201)
    def register(payload: RegisterIn, repo: LedgerRepository = Depends(get_repo)):
        user, token = AuthService(repo, settings).register(payload)
        return {"token": token, "user": user_payload(user)}

    @app.post("/api/auth/login")
    def login(payload: LoginIn, repo: LedgerRepository = Depends(get_repo)):
        user, token = AuthService(repo, settings).login(payload)
        return {"token": token, "user": user_payload(user)}

    @app.get("/api/auth/profile")
    def profile(
        user_id: int = Depends(current_user_id),
        repo: LedgerRepository = Depends(get_repo),
    ):
        user = AuthService(repo, settings).profile(user_id)
        return {**user_payload(user), "createdAt": user.created_at}

    @app.get("/api/categories", response_model=list[CategoryOut])
    def list_categories(
        type: Optional[str] = None,
        _user_id: int = Depends(current_user_id),
        repo: LedgerRepository = Depends(get_repo),
    ):
        return [
            CategoryOut.from_category(c)
            for c in CategoryService(repo).list_all(_parse_type(type))
        ]

    @app.get("/api/transactions", response_model=list[TransactionOut])
    def list_transactions(
        start_date: Optional[str] = Query(default=None, alias="startDate"),
        end_date: Optional[str] = Query(default=None, alias="endDate"),
        type: Optional[str] = None,
        category_id: Optional[int] = Query(default=None, alias="categoryId"),
        user_id: int = Depends(current_user_id),
        repo: LedgerRepository = Depends(get_repo),
    ):
        window = resolve_range(start_date, end_date)
        filters = TransactionFilters(
            start=window.start,
            end=window.end,
            type=_parse_type(type),
            category_id=category_id,
        )
        return [
            TransactionOut.from_view(v)
            for v in TransactionService(repo, user_id).list(filters)
        ]

    @app.post("/api/transactions", status_code=201, response_model=TransactionOut)
    def create_transaction(
        payload: TransactionPayload,
        user_id: int = Depends(current_user_id),
        repo: LedgerRepository = Depends(get_repo),
    ):
        service = TransactionService(repo, user_id)
        txn = service.create(transaction_in(payload))
        return TransactionOut.from_view(service.view(txn))

    @app.put("/api/transactions/{transaction_id}", response_model=TransactionOut)
    def update_transaction(
        transaction_id: int,
        payload: TransactionPayload,
        user_id: int = Depends(current_user_id),
        repo: LedgerRepository = Depends(get_repo),
    ):
        service = TransactionService(repo, user_id)
        txn = service.update(transaction_id, transaction_in(payload))
        return TransactionOut.from_view(service.view(txn))

    @app.delete("/api/transactions/{transaction_id}", status_code=204)
    def delete_transaction(
        transaction_id: int,
        user_id: int = Depends(current_user_id),
        repo: LedgerRepository = Depends(get_repo),
    ):
        TransactionService(repo, user_id).delete(transaction_id)
        return Response(status_code=204)

    @app.get("/api/dashboard/summary", response_model=DashboardOut)
    def dashboard_summary(
        start_date: Optional[str] = Query(default=None, alias="startDate"),
        end_date: Optional[str] = Query(default=None, alias="endDate"),
        user_id: int = Depends(current_user_id),
        repo: LedgerRepository = Depends(get_repo),
    ):
        service = DashboardService(repo, user_id, recent_limit=settings.recent_limit)
        summary = service.summary(resolve_range(start_date, end_date))
        return DashboardOut.from_summary(summary)

    @app.get("/api/budgets", response_model=list[BudgetOut])
    def list_budgets(
        month: Optional[int] = None,
        year: Optional[int] = None,
        user_id: int = Depends(current_user_id),
        repo: LedgerRepository = Depends(get_repo),
    ):
        service = BudgetService(repo, user_id)
        return [service.describe(b) for b in service.list(month, year)]

    @app.get("/api/budgets/analysis", response_model=BudgetAnalysisOut)
    def budget_analysis(
        month: Optional[int] = None,
        year: Optional[int] = None,
        user_id: int = Depends(current_user_id),
        repo: LedgerRepository = Depends(get_repo),
    ):
        analysis = BudgetService(repo, user_id).analysis(month, year)
        return BudgetAnalysisOut.from_analysis(analysis)

    @app.post("/api/budgets", status_code=201, response_model=BudgetOut)
    def upsert_budget(
        payload: BudgetPayload,
        user_id: int = Depends(current_user_id),
        repo: LedgerRepository = Depends(get_repo),
    ):
        service = BudgetService(repo, user_id)
        budget = service.upsert(
            BudgetIn(
                category_id=payload.category_id,
                month=payload.month,
                year=payload.year,
                amount_cents=to_cents(payload.amount),
            )
        )
        return service.describe(budget)

    @app.delete("/api/budgets/{budget_id}", status_code=204)
    def delete_budget(
        budget_id: int,
        user_id: int = Depends(current_user_id),
        repo: LedgerRepository = Depends(get_repo),
    ):
        BudgetService(repo, user_id).delete(budget_id)
        return Response(status_code=204)

    return app
