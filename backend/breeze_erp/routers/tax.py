"""Stateless tax endpoints over the GST calculator."""
from typing import Any, List, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, model_validator

from ..config.settings import get_settings
from ..services import tax_calculator
from ..utils.api_shapes import normalize_keys, success as _success
from .auth import get_current_user

router = APIRouter(tags=["tax"], dependencies=[Depends(get_current_user)])


class TaxRequest(BaseModel):
    items: List[Any] = []
    supplier_state: Union[str, int, None] = None
    recipient_state: Union[str, int, None] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, values):  # type: ignore
        return normalize_keys(values, {"supplierState": "supplier_state", "recipientState": "recipient_state"})

    def states(self):
        supplier = tax_calculator.normalize_state_code(self.supplier_state) or get_settings().COMPANY_STATE_CODE
        recipient = tax_calculator.normalize_state_code(self.recipient_state) or supplier
        return supplier, recipient


@router.post("/calculate")
async def calculate(body: TaxRequest):
    supplier, recipient = body.states()
    totals = tax_calculator.calculate_totals(body.items, supplier, recipient)
    return _success({
        "totals": totals.as_dict(),
        "lines": tax_calculator.line_breakdown(body.items, supplier, recipient),
        "intra_state": tax_calculator.is_intra_state(supplier, recipient),
    })


@router.post("/hsn-summary")
async def hsn_summary(body: TaxRequest):
    supplier, recipient = body.states()
    return _success({"summary": tax_calculator.hsn_summary(body.items, supplier, recipient)})


@router.get("/states")
async def list_states():
    states = [{"code": code, "name": name} for code, name in tax_calculator.STATE_CODES.items()]
    return _success({"states": states}, total=len(states))


@router.get("/rates")
async def list_rates():
    return _success({"rates": list(tax_calculator.GST_RATES), "default": get_settings().DEFAULT_GST_RATE})
