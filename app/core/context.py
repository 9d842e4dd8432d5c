import contextvars

_request_id: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")
_user_id: contextvars.ContextVar[str] = contextvars.ContextVar("user_id", default="-")
_client_ip: contextvars.ContextVar[str] = contextvars.ContextVar("client_ip", default="-")


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


def set_user_id(user_id: str) -> None:
    _user_id.set(user_id)


def get_user_id() -> str:
    return _user_id.get()


def set_client_ip(client_ip: str) -> None:
    _client_ip.set(client_ip)


def get_client_ip() -> str:
    return _client_ip.get()


def clear_context() -> None:
    for var in (_request_id, _user_id, _client_ip):
        var.set("-")
