"""FastAPI application for the indent ledger."""

import uuid
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from indent_ledger.config import settings, validate_settings_on_startup
from indent_ledger.models import (
    CompanyRequest,
    ErrorDetail,
    HealthResponse,
    ItemUpdateResponse,
    QuantitiesResponse,
    SheetRequest,
    SheetResponse,
    UpdateCompanyRequest,
    UpdateCompanyResponse,
)
from indent_ledger.services.sheet_ledger import SheetLedger
from indent_ledger.services.workbook_store import ExcelWorkbookStore
from indent_ledger.utils.exceptions import ErrorCode, LedgerError
from indent_ledger.utils.logging import (
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# Configure structured logging using settings
configure_logging(
    level=settings.log_level_int,
    use_structured_formatter=True,
)
logger = get_logger(__name__)


def build_ledger() -> SheetLedger:
    """Create the ledger for the configured workbook."""
    return SheetLedger(
        ExcelWorkbookStore(settings.workbook_path),
        template_names=settings.template_sheet_names,
        strict_quantities=settings.strict_quantities,
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Indent Ledger API",
        description=(
            "Daily order ledger backed by a single workbook: one sheet per "
            "date, one column per company, one row per item."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.ledger = build_ledger()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    validate_settings_on_startup(settings)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next: Any) -> Any:
        """Assign a request ID, expose it in logs and response headers."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        set_request_id(request_id)
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()

    @app.exception_handler(LedgerError)
    async def ledger_exception_handler(
        request: Request, exc: LedgerError
    ) -> JSONResponse:
        """Map ledger errors to structured responses with error codes."""
        request_id = getattr(request.state, "request_id", get_request_id())
        http_status = exc.get_http_status()
        error = exc.to_dict()
        log = logger.error if http_status >= 500 else logger.warning
        log(
            f"Ledger Error: {exc.message}",
            error_code=error["error_code"],
            http_status=http_status,
        )
        return JSONResponse(
            status_code=http_status,
            content=ErrorDetail(
                error=error["message"],
                error_code=error["error_code"],
                details=error.get("details"),
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Report malformed bodies as 400 validation errors."""
        request_id = getattr(request.state, "request_id", get_request_id())
        errors = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        ]
        logger.warning("Malformed request body", errors=len(errors))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorDetail(
                error="Missing fields",
                error_code=ErrorCode.MISSING_FIELD.value,
                details={"validation_errors": errors},
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.warning(
            f"HTTP Error: {exc.detail}",
            status_code=exc.status_code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorDetail(
                error=str(exc.detail),
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all handler that avoids leaking internal details."""
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.exception(
            f"Unexpected error: {type(exc).__name__}",
            error_type=type(exc).__name__,
        )
        if settings.debug:
            detail = f"Internal server error: {type(exc).__name__}: {exc}"
        else:
            detail = "Internal server error. Please try again later."

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorDetail(
                error=detail,
                error_code=ErrorCode.INTERNAL_ERROR.value,
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> dict[str, Any]:
        """Check the health status of the service."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": "0.1.0",
        }

    @app.post(
        "/api/sheet",
        response_model=SheetResponse,
        tags=["Ledger"],
        responses={
            400: {"model": ErrorDetail, "description": "Missing or invalid date"},
            500: {"model": ErrorDetail, "description": "No template sheet"},
        },
    )
    async def ensure_sheet(request: Request, body: SheetRequest) -> dict[str, Any]:
        """Create the dated sheet from the template, or report that it exists."""
        ledger: SheetLedger = request.app.state.ledger
        result = await run_in_threadpool(ledger.ensure_daily_sheet, body.date)
        return {"status": result.status, "sheetName": result.sheet_name}

    @app.post(
        "/api/get-company",
        response_model=QuantitiesResponse,
        tags=["Ledger"],
        responses={
            400: {"model": ErrorDetail, "description": "Missing fields"},
            404: {"model": ErrorDetail, "description": "Sheet not found"},
        },
    )
    async def get_company(request: Request, body: CompanyRequest) -> dict[str, Any]:
        """Return the quantities recorded for one company on one date."""
        ledger: SheetLedger = request.app.state.ledger
        quantities = await run_in_threadpool(
            ledger.read_company_quantities, body.date, body.company
        )
        return {"quantities": quantities}

    @app.post(
        "/api/update-company",
        response_model=UpdateCompanyResponse,
        tags=["Ledger"],
        responses={
            400: {"model": ErrorDetail, "description": "Missing fields or company"},
            404: {"model": ErrorDetail, "description": "Sheet not found"},
            409: {"model": ErrorDetail, "description": "Concurrent modification"},
        },
    )
    async def update_company(
        request: Request, body: UpdateCompanyRequest
    ) -> dict[str, Any]:
        """Write quantities for one company without breaking formulas."""
        ledger: SheetLedger = request.app.state.ledger
        results = await run_in_threadpool(
            ledger.write_company_quantities, body.date, body.company, body.quantities
        )
        return {
            "updated": [
                ItemUpdateResponse(veg=r.item, status=r.status) for r in results
            ]
        }

    @app.get(
        "/download",
        tags=["Ledger"],
        responses={404: {"model": ErrorDetail, "description": "Workbook missing"}},
    )
    async def download(request: Request) -> Response:
        """Download the whole workbook."""
        ledger: SheetLedger = request.app.state.ledger
        data = await run_in_threadpool(ledger.download_document)
        filename = settings.workbook_path.name
        return Response(
            content=data,
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return app


# Create the default app instance
app = create_app()
