from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


def normalize_database_url(url: str) -> str:
    """Coerce hosted-Postgres style URLs into the asyncpg dialect.

    ``postgres://`` and plain ``postgresql://`` become ``postgresql+asyncpg://``;
    libpq-only query options that asyncpg rejects are translated to ``ssl``.
    """
    url = (url or "").strip()
    if not url:
        return url

    parts = urlsplit(url)
    scheme = parts.scheme
    if scheme not in {"postgres", "postgresql", "postgresql+asyncpg", "postgresql+psycopg"}:
        return url
    scheme = "postgresql+asyncpg"

    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    sslmode = query.pop("sslmode", None)
    query.pop("channel_binding", None)
    if sslmode is not None and "ssl" not in query:
        normalized = sslmode.lower().strip()
        if normalized in {"0", "false", "no", "off", "disable"}:
            query["ssl"] = "disable"
        elif normalized in {"verify-ca", "verify-full"}:
            query["ssl"] = normalized
        else:
            query["ssl"] = "require"

    new_query = urlencode(query, doseq=True)
    return urlunsplit((scheme, parts.netloc, parts.path, new_query, parts.fragment))


def is_sqlite_url(url: str) -> bool:
    return (url or "").strip().startswith("sqlite")
