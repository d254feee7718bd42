import json


TOTAL_STEPS = 2


def sse_event(event_type: str, data: dict | None = None) -> str:
    """Format one Server-Sent Event line: data: {"type": ..., **data}"""
    payload = {"type": event_type, **(data or {})}
    return f"data: {json.dumps(payload)}\n\n"


def status_event(message: str, step: int) -> str:
    return sse_event("status", {"message": message, "step": step, "totalSteps": TOTAL_STEPS})


def menu_chunk_event(chunk: dict) -> str:
    return sse_event("menu_chunk", {"data": chunk})


def error_event(message: str | None) -> str:
    return sse_event("error", {"message": message or "Unknown error"})
