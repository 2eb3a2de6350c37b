"""
Webhook response envelopes.

RESPONSE FORMAT:
    Processed message:
        {"success": true, "step": "<next step>", "message": "Mensagem processada"}

    Global cancel command:
        {"success": true, "action": "cancelled"}

    Error (400 / 404 / 500):
        {"error": "Human-readable message"}

Notification endpoint (always HTTP 200):
        {"success": true} or {"success": false, "reason": "..."}

Reminder job:
        {"success": true, "results": {"processed": n, "sent_24h": n, ...}}
        {"success": false, "error": "..."}  (500)
"""

from typing import Optional

from fastapi import status
from fastapi.responses import JSONResponse


PROCESSED_MESSAGE = "Mensagem processada"


class ErrorMessages:
    """Error texts returned to webhook callers."""

    MISSING_FIELDS = "Campos obrigatórios: instanceId, msgContent, sender"
    INVALID_JSON = "Corpo da requisição inválido"
    SHOP_NOT_FOUND = "Shop não encontrado"
    INTERNAL_ERROR = "Erro interno"


def step_response(step: str) -> dict:
    """Envelope for a message handled by the dialogue engine."""
    return {"success": True, "step": step, "message": PROCESSED_MESSAGE}


def cancelled_response() -> dict:
    """Envelope for the global cancel command."""
    return {"success": True, "action": "cancelled"}


def error_response(message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def notification_response(success: bool, reason: Optional[str] = None) -> dict:
    response: dict = {"success": success}
    if reason:
        response["reason"] = reason
    return response


def reminder_run_response(results: dict) -> dict:
    return {"success": True, "results": results}


def reminder_error_response(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": message},
    )
