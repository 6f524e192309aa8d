from fastapi.responses import JSONResponse

from blogcms.envelope import Envelope, Reason

_STATUS_BY_REASON: dict[Reason, int] = {
    Reason.VALIDATION: 422,
    Reason.NOT_FOUND: 404,
    Reason.CONFLICT: 409,
    Reason.STORE: 500,
}


def envelope_response(envelope: Envelope, success_status: int = 200) -> JSONResponse:
    """Render an envelope as JSON with a status code matching its outcome."""
    if envelope.ok:
        status_code = success_status
    else:
        status_code = _STATUS_BY_REASON.get(envelope.reason, 500)
    return JSONResponse(envelope.model_dump(mode="json"), status_code=status_code)
