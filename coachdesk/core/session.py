from fastapi import Request, Response
from itsdangerous import BadSignature, URLSafeSerializer

from coachdesk.core.config import get_settings

settings = get_settings()
serializer = URLSafeSerializer(settings.secret_key, salt="coachdesk-session")


def set_session(response: Response, user_id: int) -> None:
    response.set_cookie(
        settings.session_cookie,
        serializer.dumps({"uid": user_id}),
        httponly=True,
        samesite="lax",
    )


def clear_session(response: Response) -> None:
    response.delete_cookie(settings.session_cookie)


def read_session(request: Request) -> int | None:
    raw = request.cookies.get(settings.session_cookie)
    if not raw:
        return None
    try:
        payload = serializer.loads(raw)
    except BadSignature:
        return None
    if not isinstance(payload, dict):
        return None
    try:
        return int(payload.get("uid"))
    except (TypeError, ValueError):
        return None
