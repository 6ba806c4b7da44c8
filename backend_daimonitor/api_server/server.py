"""
FastAPI server — wallet collection, sync actions, stats and AI summary.

Exposes the dashboard's actions over JSON: list/search/sort wallets, sync now,
upload addresses, delete/purge, change the RPC endpoint, portfolio stats and
the AI narrative. On startup the lifespan loads the collection and runs the
automatic sync when the last one is absent or stale; a failed auto-sync is
logged and the API still starts with the stored data.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from backend_daimonitor import __version__
from backend_daimonitor.analytics.stats import (
    SORT_BALANCE_DESC,
    SORT_OPTIONS,
    change_1d,
    change_7d,
    daily_totals,
    filter_wallets,
    format_address,
    portfolio_totals,
    sort_wallets,
)
from backend_daimonitor.analytics.summary import summarize_wallets
from backend_daimonitor.config.env import mask_url
from backend_daimonitor.config.settings import Settings, get_settings
from backend_daimonitor.core.exceptions import ChainReadError, InvalidAddressError, StoreError
from backend_daimonitor.intake.parser import parse_address_lines
from backend_daimonitor.models import WalletRecord
from backend_daimonitor.monitor_logging import get_logger
from backend_daimonitor.sync.orchestrator import SyncOrchestrator, build_orchestrator

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------


class HistoryEntryOut(BaseModel):
    date: str
    balance: float


class WalletOut(BaseModel):
    """One tracked wallet with derived 7-day and 1-day change."""

    address: str = Field(..., description="Lowercase 0x address")
    short_address: str = Field(..., description="Shortened address for display")
    owner: str = Field("", description="Label")
    initial_balance: float
    initial_block: int
    current_balance: float
    last_updated: str
    history: list[HistoryEntryOut] = Field(default_factory=list)
    change_7d: float
    change_1d: float

    @classmethod
    def from_record(cls, wallet: WalletRecord) -> "WalletOut":
        return cls(
            address=wallet.address,
            short_address=format_address(wallet.address),
            owner=wallet.owner,
            initial_balance=wallet.initial_balance,
            initial_block=wallet.initial_block,
            current_balance=wallet.current_balance,
            last_updated=wallet.last_updated,
            history=[HistoryEntryOut(date=h.date, balance=h.balance) for h in wallet.history],
            change_7d=change_7d(wallet),
            change_1d=change_1d(wallet),
        )


class DailyTotal(BaseModel):
    date: str
    total: float


class StatsResponse(BaseModel):
    wallet_count: int
    total_balance: float
    total_change_7d: float
    daily_totals: list[DailyTotal] = Field(default_factory=list)


class StatusResponse(BaseModel):
    last_sync: str | None = Field(None, description="ISO timestamp of the last successful sync")
    wallet_count: int
    remote_enabled: bool
    busy: bool
    rpc_url: str
    last_remote_error: str | None = None


class SyncResponse(BaseModel):
    wallet_count: int
    last_sync: str | None


class UploadAddressesRequest(BaseModel):
    """Free text, one wallet per line: '0xAddress' or 'Label, 0xAddress'."""

    text: str = Field(..., description="Bulk address text")


class UploadAddressesResponse(BaseModel):
    parsed: int = Field(..., description="Lines with a recognizable address")
    wallet_count: int = Field(..., description="Collection size after merge")
    last_sync: str | None


class WalletCountResponse(BaseModel):
    wallet_count: int


class RpcUrlBody(BaseModel):
    rpc_url: str = Field(..., description="EVM JSON-RPC endpoint")


class SummaryResponse(BaseModel):
    summary: str


# -----------------------------------------------------------------------------
# App factory, lifespan and dependencies
# -----------------------------------------------------------------------------


def get_orchestrator(request: Request) -> SyncOrchestrator:
    return request.app.state.orchestrator


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def create_app(
    settings: Settings | None = None,
    orchestrator: SyncOrchestrator | None = None,
) -> FastAPI:
    """
    Build the API app. Components are created in the lifespan from settings
    unless an orchestrator is passed in.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings or get_settings()
        app.state.orchestrator = orchestrator or build_orchestrator(app.state.settings)
        try:
            await app.state.orchestrator.startup()
        except StoreError as e:
            logger.exception("api_startup_load_failed", error=str(e))
        logger.info(
            "api_started",
            wallet_count=len(app.state.orchestrator.wallets),
            remote_enabled=app.state.orchestrator.store.remote_enabled(),
        )
        yield
        logger.info("api_stopped")

    app = FastAPI(
        title="DAI Monitor API",
        description="Polygon DAI balance tracking: sync, history, stats and AI summary.",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/health")
    def health() -> dict[str, str]:
        """Liveness probe: API is up."""
        return {"status": "ok"}

    @app.get("/status", response_model=StatusResponse)
    def status(orch: SyncOrchestrator = Depends(get_orchestrator)) -> StatusResponse:
        return StatusResponse(
            last_sync=orch.last_sync,
            wallet_count=len(orch.wallets),
            remote_enabled=orch.store.remote_enabled(),
            busy=orch.busy,
            rpc_url=mask_url(orch.reader.rpc_url),
            last_remote_error=orch.store.last_remote_error,
        )

    @app.get("/wallets", response_model=list[WalletOut])
    def list_wallets(
        search: str = Query("", description="Substring of address or label"),
        sort: str = Query(SORT_BALANCE_DESC, description=f"One of {', '.join(SORT_OPTIONS)}"),
        orch: SyncOrchestrator = Depends(get_orchestrator),
    ) -> list[WalletOut]:
        if sort not in SORT_OPTIONS:
            raise HTTPException(status_code=400, detail=f"sort must be one of {', '.join(SORT_OPTIONS)}")
        wallets = sort_wallets(filter_wallets(orch.wallets, search), sort)
        return [WalletOut.from_record(w) for w in wallets]

    @app.get("/stats", response_model=StatsResponse)
    def stats(orch: SyncOrchestrator = Depends(get_orchestrator)) -> StatsResponse:
        totals = portfolio_totals(orch.wallets)
        return StatsResponse(
            **totals,
            daily_totals=[DailyTotal(**d) for d in daily_totals(orch.wallets)],
        )

    @app.post("/sync", response_model=SyncResponse)
    async def sync(orch: SyncOrchestrator = Depends(get_orchestrator)) -> SyncResponse:
        """Refresh every tracked wallet now."""
        try:
            wallets = await orch.sync_now()
        except (ChainReadError, InvalidAddressError) as e:
            logger.error("api_sync_failed", error=str(e))
            raise HTTPException(status_code=502, detail="Failed to sync balances.") from e
        return SyncResponse(wallet_count=len(wallets), last_sync=orch.last_sync)

    @app.post("/upload_addresses", response_model=UploadAddressesResponse)
    async def upload_addresses(
        body: UploadAddressesRequest,
        orch: SyncOrchestrator = Depends(get_orchestrator),
    ) -> UploadAddressesResponse:
        """Register wallets from bulk text; re-uploading an address updates its label."""
        entries = parse_address_lines(body.text)
        if not entries:
            raise HTTPException(
                status_code=400,
                detail="No valid addresses found in input. Use '0xAddress' or 'Label, 0xAddress'.",
            )
        try:
            wallets = await orch.register_addresses(entries)
        except InvalidAddressError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except ChainReadError as e:
            logger.error("api_upload_failed", error=str(e))
            raise HTTPException(status_code=502, detail="Error initializing new addresses.") from e
        return UploadAddressesResponse(
            parsed=len(entries),
            wallet_count=len(wallets),
            last_sync=orch.last_sync,
        )

    @app.delete("/wallets/{address}", response_model=WalletCountResponse)
    async def delete_wallet(
        address: str,
        orch: SyncOrchestrator = Depends(get_orchestrator),
    ) -> WalletCountResponse:
        try:
            wallets = await orch.delete_wallet(address)
        except InvalidAddressError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return WalletCountResponse(wallet_count=len(wallets))

    @app.delete("/wallets", response_model=WalletCountResponse)
    async def purge_wallets(orch: SyncOrchestrator = Depends(get_orchestrator)) -> WalletCountResponse:
        await orch.purge()
        return WalletCountResponse(wallet_count=0)

    @app.get("/rpc_url", response_model=RpcUrlBody)
    def get_rpc_url(orch: SyncOrchestrator = Depends(get_orchestrator)) -> RpcUrlBody:
        return RpcUrlBody(rpc_url=orch.reader.rpc_url)

    @app.put("/rpc_url", response_model=RpcUrlBody)
    def put_rpc_url(
        body: RpcUrlBody,
        orch: SyncOrchestrator = Depends(get_orchestrator),
    ) -> RpcUrlBody:
        """Save the endpoint locally (never shared) and use it for subsequent reads."""
        try:
            orch.update_rpc_url(body.rpc_url)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return RpcUrlBody(rpc_url=orch.reader.rpc_url)

    @app.get("/summary", response_model=SummaryResponse)
    async def summary(
        orch: SyncOrchestrator = Depends(get_orchestrator),
        settings_: Settings = Depends(get_app_settings),
    ) -> SummaryResponse:
        text = await summarize_wallets(
            orch.wallets,
            api_key=settings_.ai_api_key,
            model=settings_.ai_model,
        )
        return SummaryResponse(summary=text)

    @app.exception_handler(HTTPException)
    def http_exception_handler(request: Any, exc: HTTPException) -> JSONResponse:
        """Consistent JSON error response for HTTPException."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    return app


app = create_app()
