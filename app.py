import logging
import os
import threading
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from flag_contract import FlagContract

load_dotenv()

# ---- Config ----

FLAG_DB_PATH = os.getenv("FLAG_DB_PATH", "flags.db")

logger = logging.getLogger("FlagService")

# ---- Persistence ----

contract: Optional[FlagContract] = None
contract_lock = threading.Lock()


def get_contract() -> FlagContract:
    """Open the flag store on first use, not at import."""
    global contract
    with contract_lock:
        if contract is None:
            contract = FlagContract(FLAG_DB_PATH)
        return contract


# ---- App ----

app = FastAPI(title="Mock Wallet Flag Contract")


class FlagRequest(BaseModel):
    wallet: Optional[str] = None
    reporter: Optional[str] = None


class FlagResponse(BaseModel):
    ok: bool
    message: str


class CountResponse(BaseModel):
    wallet: str
    report_count: int


@app.get("/healthz")
async def healthz() -> Dict[str, Any]:
    return {"ok": True, "db_path": FLAG_DB_PATH, "db_open": contract is not None}


@app.post("/flag", response_model=FlagResponse)
async def flag_wallet(req: FlagRequest) -> FlagResponse:
    if not (req.wallet or "").strip() or not (req.reporter or "").strip():
        raise HTTPException(status_code=400, detail="Wallet and Reporter are required")
    get_contract().flag(req.wallet, req.reporter)
    logger.info("wallet %s flagged by %s", req.wallet, req.reporter)
    return FlagResponse(ok=True, message="Wallet flagged successfully")


@app.get("/count", response_model=CountResponse)
async def report_count(wallet: str = "") -> CountResponse:
    if not wallet.strip():
        raise HTTPException(status_code=400, detail="Wallet address required")
    return CountResponse(wallet=wallet, report_count=get_contract().count(wallet))


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8080")))
