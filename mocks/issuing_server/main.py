from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import asyncio
import os
import time
from urllib.parse import parse_qsl

app = FastAPI(title="Mock Issuing Server", version="1.0.0")
# Authorization ids starting with this prefix answer 402, like a closed authorization would
FAIL_PREFIX = os.environ.get("MOCK_ISSUING_FAIL_PREFIX", "iauth_fail")
# Seconds to stall approve/decline calls for authorization ids starting with "iauth_slow"
SLOW_SECONDS = float(os.environ.get("MOCK_ISSUING_SLOW_SECONDS", "3"))

calls: list = []


def _authorization(authorization_id: str, form: dict, approved: bool) -> dict:
    return {
        "id": authorization_id,
        "object": "issuing.authorization",
        "approved": approved,
        "status": "pending" if approved else "closed",
        "amount": int(form["amount"]) if "amount" in form else None,
        "metadata": {k[len("metadata["):-1]: v for k, v in form.items() if k.startswith("metadata[")},
    }


async def _form(request: Request) -> dict:
    return dict(parse_qsl((await request.body()).decode()))


async def _record(request: Request, authorization_id: str, action: str) -> dict:
    form = await _form(request)
    calls.append({
        "action": action,
        "authorization_id": authorization_id,
        "form": form,
        "account": request.headers.get("Stripe-Account"),
        "authorization": request.headers.get("Authorization"),
    })
    if authorization_id.startswith("iauth_slow"):
        await asyncio.sleep(SLOW_SECONDS)
    return form


def _closed(authorization_id: str) -> JSONResponse:
    return JSONResponse(status_code=402, content={"error": {
        "type": "invalid_request_error",
        "message": f"Authorization {authorization_id} is already closed.",
    }})


@app.get("/health")
def health(): return {"status": "ok"}

@app.post("/v1/issuing/authorizations/{authorization_id}/approve")
async def approve(authorization_id: str, request: Request):
    form = await _record(request, authorization_id, "approve")
    if authorization_id.startswith(FAIL_PREFIX):
        return _closed(authorization_id)
    return JSONResponse(content=_authorization(authorization_id, form, approved=True))

@app.post("/v1/issuing/authorizations/{authorization_id}/decline")
async def decline(authorization_id: str, request: Request):
    form = await _record(request, authorization_id, "decline")
    if authorization_id.startswith(FAIL_PREFIX):
        return _closed(authorization_id)
    return JSONResponse(content=_authorization(authorization_id, form, approved=False))

@app.post("/v1/test_helpers/issuing/authorizations")
async def create_test_authorization(request: Request):
    form = await _form(request)
    if "card" not in form:
        return JSONResponse(status_code=400, content={"error": {"message": "Missing required param: card."}})
    authorization_id = f"iauth_test_{int(time.time() * 1000)}"
    calls.append({"action": "create", "authorization_id": authorization_id, "form": form,
                  "account": request.headers.get("Stripe-Account")})
    return JSONResponse(content={
        "id": authorization_id,
        "object": "issuing.authorization",
        "amount": int(form["amount"]),
        "currency": form.get("currency"),
        "approved": False,
        "status": "pending",
        "merchant_data": {k[len("merchant_data["):-1]: v for k, v in form.items() if k.startswith("merchant_data[")},
    })
