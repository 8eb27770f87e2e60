"""
FastAPI REST API Module

Thin HTTP adapter over a TokenLedger. The caller identity of mutating
requests comes from the X-Caller header. Amounts travel as decimal
strings so that uint256 values survive JSON clients.
"""

from datetime import datetime, timezone
from typing import Optional
from fastapi import FastAPI, Header, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from . import __version__
from .addresses import normalize_address
from .amounts import require_amount
from .audit import RecordType
from .config import get_config
from .errors import InvalidAddress, InvalidAmount, InvalidMetadata, LedgerError
from .initializer import create_ledger
from .ledger import TokenLedger
from .logging_config import setup_logging


# Pydantic models for API requests
class TransferRequest(BaseModel):
    to: str = Field(..., description="Recipient address")
    amount: str = Field(..., description="Amount in base units as decimal string")


class ApproveRequest(BaseModel):
    spender: str = Field(..., description="Spender address")
    amount: str = Field(..., description="Allowance in base units as decimal string")


class TransferFromRequest(BaseModel):
    owner: str = Field(..., alias="from", description="Address whose balance is debited")
    to: str = Field(..., description="Recipient address")
    amount: str = Field(..., description="Amount in base units as decimal string")


class AllowanceChangeRequest(BaseModel):
    spender: str = Field(..., description="Spender address")
    amount: str = Field(..., description="Change in base units as decimal string")


def _parse_amount(raw: str) -> int:
    try:
        value = int(raw, 10)
    except (TypeError, ValueError):
        raise InvalidAmount(f"Amount must be a decimal integer string, got {raw!r}")
    return require_amount(value)


_VALIDATION_ERRORS = (InvalidAmount, InvalidAddress, InvalidMetadata)


def create_app(ledger: Optional[TokenLedger] = None) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        ledger: Ledger to serve; built from configuration when omitted
    """
    if ledger is None:
        config = get_config()
        setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
        ledger = create_ledger(config)

    app = FastAPI(
        title="Token Ledger API",
        description="Fixed-supply fungible token ledger with allowances",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.ledger = ledger

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        if isinstance(exc, _VALIDATION_ERRORS):
            status_code = 422
        else:
            status_code = status.HTTP_400_BAD_REQUEST
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "conserved": ledger.verify_conservation(),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    @app.get("/token")
    async def get_token():
        """Token metadata and supply"""
        return {
            "name": ledger.name(),
            "symbol": ledger.symbol(),
            "decimals": ledger.decimals(),
            "total_supply": str(ledger.total_supply())
        }

    @app.get("/balances/{account}")
    async def get_balance(account: str):
        """Balance of an account"""
        balance = ledger.balance_of(account)
        return {
            "account": normalize_address(account),
            "balance": str(balance),
            "formatted": ledger.format_amount(balance)
        }

    @app.get("/allowances/{owner}/{spender}")
    async def get_allowance(owner: str, spender: str):
        """Remaining allowance of spender over owner"""
        return {
            "owner": normalize_address(owner),
            "spender": normalize_address(spender),
            "allowance": str(ledger.allowance(owner, spender))
        }

    @app.post("/transfer")
    async def transfer(request: TransferRequest, caller: str = Header(..., alias="X-Caller")):
        """Transfer from the caller's balance"""
        ledger.transfer(caller, request.to, _parse_amount(request.amount))
        return {"success": True}

    @app.post("/approve")
    async def approve(request: ApproveRequest, caller: str = Header(..., alias="X-Caller")):
        """Set the caller's allowance for a spender"""
        ledger.approve(caller, request.spender, _parse_amount(request.amount))
        return {"success": True}

    @app.post("/transfer-from")
    async def transfer_from(request: TransferFromRequest, caller: str = Header(..., alias="X-Caller")):
        """Delegated transfer using the caller's allowance"""
        ledger.transfer_from(caller, request.owner, request.to, _parse_amount(request.amount))
        return {"success": True}

    @app.post("/allowances/increase")
    async def increase_allowance(request: AllowanceChangeRequest, caller: str = Header(..., alias="X-Caller")):
        """Raise the caller's allowance for a spender"""
        ledger.increase_allowance(caller, request.spender, _parse_amount(request.amount))
        return {"success": True}

    @app.post("/allowances/decrease")
    async def decrease_allowance(request: AllowanceChangeRequest, caller: str = Header(..., alias="X-Caller")):
        """Lower the caller's allowance for a spender"""
        ledger.decrease_allowance(caller, request.spender, _parse_amount(request.amount))
        return {"success": True}

    @app.get("/events")
    async def list_events(
        record_type: Optional[str] = None,
        account: Optional[str] = None,
        since: int = Query(0, ge=0),
        limit: Optional[int] = Query(None, ge=1)
    ):
        """Transfer and Approval records in sequence order"""
        try:
            type_filter = RecordType(record_type) if record_type else None
        except ValueError:
            return JSONResponse(
                status_code=422,
                content={"error": "invalid_record_type", "detail": f"Unknown record type: {record_type}"}
            )

        records = ledger.record_log.get_records(
            record_type=type_filter,
            account=normalize_address(account) if account else None,
            since_sequence=since,
            limit=limit
        )
        return {
            "events": [
                {
                    "sequence": r.sequence,
                    "type": r.record_type.value,
                    "source": r.source,
                    "target": r.target,
                    "amount": str(r.amount),
                    "caller": r.caller,
                    "hash": r.current_hash,
                    "created_at": r.created_at.isoformat()
                }
                for r in records
            ]
        }

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    uvicorn.run(
        "token_ledger.api:create_app",
        factory=True,
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level="info"
    )
