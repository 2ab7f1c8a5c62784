"""
Business tool definitions: invoices, commissions and orders.

Each source list holds ToolDescriptors built around one BolApiClient. A tool
handler receives its validated parameters model, calls the Retailer API
through the client, and always returns a JSON-serializable payload:

    {"ok": true,  "data": ...}
    {"ok": false, "error": {"type": "ApiError", "status_code": 404, "message": "..."}}

Handlers never raise to the transport; the calling agent gets a readable
failure message instead of a crashed tool call.

Tool source order (used by the registry, first occurrence of a name wins):
    invoices -> commissions -> orders
"""

import base64
import logging
from typing import Any, Literal

from pydantic import BaseModel, Field

from src.bol_api import RETAILER_JSON, RETAILER_PDF, BinaryPayload, BolApiClient
from src.errors import BolMCPError
from src.registry import ToolDescriptor

logger = logging.getLogger("bol-mcp.tools")

Condition = Literal["NEW", "AS_NEW", "GOOD", "REASONABLE", "MODERATE"]

INVOICE_FORMATS = {
    "json": RETAILER_JSON,
    "pdf": RETAILER_PDF,
    "html": "text/html",
}

MAX_ERROR_BODY_CHARS = 500


# ---------------------------------------------------------------------------
# Result payloads
# ---------------------------------------------------------------------------


def success_payload(data: Any) -> dict[str, Any]:
    if isinstance(data, BinaryPayload):
        return {
            "ok": True,
            "content_type": data.content_type,
            "data_base64": base64.b64encode(data.content).decode("ascii"),
        }
    return {"ok": True, "data": data}


def failure_payload(error: BolMCPError, context: str) -> dict[str, Any]:
    """Describe a failed partner call in words the agent can relay to a user."""
    message = f"Error while {context}"
    if error.status_code is not None:
        message += f" (HTTP {error.status_code})"
    detail = error.body[:MAX_ERROR_BODY_CHARS] if error.body else error.message
    message += f": {detail}"
    return {
        "ok": False,
        "error": {
            "type": type(error).__name__,
            "status_code": error.status_code,
            "message": message,
        },
    }


async def _run(context: str, call) -> dict[str, Any]:
    try:
        return success_payload(await call)
    except BolMCPError as e:
        logger.error("Tool call failed while %s: %s", context, e.message)
        return failure_payload(e, context)


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------


class GetInvoiceListParams(BaseModel):
    page: int = Field(1, ge=1, description="Page number to fetch (>= 1).")
    shipment_id: str | None = Field(None, description="Only invoice requests for this shipment id.")
    state: Literal["OPEN", "UPLOAD_ERROR", "ALL"] = Field(
        "ALL", description="Filter invoice requests by state."
    )


class GetInvoiceDetailsParams(BaseModel):
    invoice_id: str = Field(description="Id of the invoice to fetch.")
    page: int = Field(1, ge=1, description="Page of the invoice specification transactions.")
    format: Literal["json", "pdf", "html"] = Field(
        "json", description="Representation to return: json specification, pdf or html."
    )


def build_invoice_tools(api: BolApiClient) -> list[ToolDescriptor]:
    async def get_invoice_list(params: GetInvoiceListParams) -> dict[str, Any]:
        query = {"page": params.page, "shipment-id": params.shipment_id, "state": params.state}
        return await _run("fetching invoice requests", api.call("/invoices", "GET", query=query))

    async def get_invoice_details(params: GetInvoiceDetailsParams) -> dict[str, Any]:
        return await _run(
            f"fetching invoice {params.invoice_id}",
            api.call(
                f"/invoices/{params.invoice_id}",
                "GET",
                query={"page": params.page},
                headers={"Accept": INVOICE_FORMATS[params.format]},
            ),
        )

    return [
        ToolDescriptor(
            name="get_invoice_list",
            description="List invoice requests from bol.com, paginated.",
            parameters=GetInvoiceListParams,
            execute=get_invoice_list,
        ),
        ToolDescriptor(
            name="get_invoice_details",
            description="Fetch one bol.com invoice as a JSON specification, PDF or HTML.",
            parameters=GetInvoiceDetailsParams,
            execute=get_invoice_details,
        ),
    ]


# ---------------------------------------------------------------------------
# Commissions
# ---------------------------------------------------------------------------


class GetCommissionSingleParams(BaseModel):
    ean: str = Field(description="EAN of the product.")
    unit_price: float = Field(gt=0, description="Selling price of one unit, in euros.")
    condition: Condition = Field("NEW", description="Condition of the offered product.")


class CommissionProduct(BaseModel):
    ean: str = Field(description="EAN of the product.")
    unit_price: float = Field(gt=0, description="Selling price of one unit, in euros.")
    condition: Condition = Field("NEW", description="Condition of the offered product.")


class GetCommissionsBulkParams(BaseModel):
    products: list[CommissionProduct] = Field(
        min_length=1, max_length=100, description="Between 1 and 100 products."
    )


def build_commission_tools(api: BolApiClient) -> list[ToolDescriptor]:
    async def get_commission_single(params: GetCommissionSingleParams) -> dict[str, Any]:
        query = {"unit-price": params.unit_price, "condition": params.condition}
        return await _run(
            f"fetching commission for EAN {params.ean}",
            api.call(f"/commission/{params.ean}", "GET", query=query),
        )

    async def get_commissions_bulk(params: GetCommissionsBulkParams) -> dict[str, Any]:
        body = {
            "commissionQueries": [
                {"ean": p.ean, "unitPrice": p.unit_price, "condition": p.condition}
                for p in params.products
            ]
        }
        return await _run(
            "fetching commissions in bulk",
            api.call("/commission", "POST", body=body, content_type=RETAILER_JSON),
        )

    return [
        ToolDescriptor(
            name="get_commission_single",
            description="Commission and reduction details for a single product.",
            parameters=GetCommissionSingleParams,
            execute=get_commission_single,
        ),
        ToolDescriptor(
            name="get_commissions_bulk",
            description="Commission and reduction details for up to 100 products at once.",
            parameters=GetCommissionsBulkParams,
            execute=get_commissions_bulk,
        ),
    ]


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class GetOrdersListParams(BaseModel):
    page: int | None = Field(None, ge=1, description="Page number to fetch (>= 1).")
    fulfilment_method: Literal["FBR", "FBB", "ALL"] | None = Field(
        None, description="Fulfilled by retailer (FBR), by bol.com (FBB), or ALL."
    )
    status: Literal["OPEN", "SHIPPED", "ALL"] | None = Field(None, description="Order status filter.")
    latest_change_date: str | None = Field(
        None, description="Only orders changed on this date (YYYY-MM-DD)."
    )


class GetSingleOrderParams(BaseModel):
    order_id: str = Field(description="Id of the order to fetch.")


def build_order_tools(api: BolApiClient) -> list[ToolDescriptor]:
    async def get_orders_list(params: GetOrdersListParams) -> dict[str, Any]:
        query = {
            "page": params.page,
            "fulfilment-method": params.fulfilment_method,
            "status": params.status,
            "latest-change-date": params.latest_change_date,
        }
        result = await _run("fetching the order list", api.call("/orders", "GET", query=query))
        data = result.get("data")
        if result["ok"] and isinstance(data, dict) and "orders" in data:
            result["data"] = data["orders"]
        return result

    async def get_single_order(params: GetSingleOrderParams) -> dict[str, Any]:
        return await _run(
            f"fetching order {params.order_id}",
            api.call(f"/orders/{params.order_id}", "GET"),
        )

    return [
        ToolDescriptor(
            name="get_orders_list",
            description="List orders from bol.com, paginated and filterable.",
            parameters=GetOrdersListParams,
            execute=get_orders_list,
        ),
        ToolDescriptor(
            name="get_single_order",
            description="Detailed information for one order.",
            parameters=GetSingleOrderParams,
            execute=get_single_order,
        ),
    ]


def build_tool_sources(api: BolApiClient) -> list[list[ToolDescriptor]]:
    """All business tool sources, in registration order."""
    return [
        build_invoice_tools(api),
        build_commission_tools(api),
        build_order_tools(api),
    ]
