from starlette.types import ASGIApp, Receive, Scope, Send


class TrustedProxiesMiddleware:
    """Take the client address from X-Forwarded-For behind a fixed number of proxies.

    Login throttling and the rate limiter key on ``request.client.host``.
    """

    def __init__(self, app: ASGIApp, proxies_count: int = 1) -> None:
        self.app = app
        self.proxies_count = proxies_count

    def _client_ip(self, forwarded_for: str) -> str | None:
        hops = [hop.strip() for hop in forwarded_for.split(",") if hop.strip()]
        # each trusted proxy appends one hop; the client sits just before them
        if len(hops) <= self.proxies_count:
            return None
        return hops[-(self.proxies_count + 1)]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.proxies_count > 0:
            headers = dict(scope.get("headers", []))
            forwarded_for = headers.get(b"x-forwarded-for", b"").decode()
            client_ip = self._client_ip(forwarded_for) if forwarded_for else None
            if client_ip:
                port = scope["client"][1] if scope.get("client") else 0
                scope["client"] = (client_ip, port)

        await self.app(scope, receive, send)
