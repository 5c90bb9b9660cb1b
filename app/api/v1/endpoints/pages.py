"""
Popup landing pages that are not tied to the API prefix.

  GET /apm/return - APM provider redirect target; reports the outcome to the opener window
"""

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from app.core.templates import templates

router = APIRouter()

_STATUS_STYLES = {
    "success": ("Payment Successful", "#10b981"),
    "pending": ("Payment Pending", "#f59e0b"),
}
_FAILED_STYLE = ("Payment Failed", "#ef4444")


@router.get("/apm/return", response_class=HTMLResponse)
async def apm_return(request: Request):
    params = dict(request.query_params)
    status = params.get("status") or "unknown"
    payment_method = params.get("paymentMethod") or "APM"
    title, color = _STATUS_STYLES.get(status, _FAILED_STYLE)

    return templates.TemplateResponse(
        request,
        "apm_return.html",
        {
            "title": title,
            "color": color,
            "status": status,
            "payment_method": payment_method,
            "is_success": status == "success",
            "is_pending": status == "pending",
            "result": params,
        },
    )
