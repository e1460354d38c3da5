# storefront/gateway_service/main.py
import secrets

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from storefront.services.gateway_client import sign
from storefront.utils.settings import GATEWAY_KEY_SECRET

app = FastAPI(title="Payment Gateway (dev mock)")

ORDERS: dict[str, dict] = {}


class OrderIn(BaseModel):
    amount: int = Field(..., gt=0)
    currency: str
    receipt: str


@app.post("/v1/orders")
def create_order(payload: OrderIn):
    intent_id = f"order_{secrets.token_hex(7)}"
    ORDERS[intent_id] = {"id": intent_id, "status": "created", **payload.model_dump()}
    return ORDERS[intent_id]


@app.post("/v1/orders/{intent_id}/pay")
def pay(intent_id: str):
    """Simulates the shopper paying; returns what the client posts to /checkout/verify."""
    order = ORDERS.get(intent_id)
    if not order:
        raise HTTPException(status_code=404, detail="Intent not found")

    payment_id = f"pay_{secrets.token_hex(7)}"
    order["status"] = "paid"
    return {
        "gateway_intent_id": intent_id,
        "gateway_payment_reference": payment_id,
        "signature": sign(intent_id, payment_id, GATEWAY_KEY_SECRET),
    }
