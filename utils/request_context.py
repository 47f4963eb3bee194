"""
Request id of the HTTP request being served.

Set by the API's request-id middleware and read wherever a log line, a
response envelope or a security event should be traceable back to the
request that produced it. Outside a request (cron jobs, tests) there is no
current id.
"""

from contextvars import ContextVar, Token

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def current_request_id() -> str | None:
    return _request_id.get()


def set_request_id(request_id: str) -> Token:
    return _request_id.set(request_id)


def reset_request_id(token: Token) -> None:
    _request_id.reset(token)
