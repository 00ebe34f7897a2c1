"""DSN parsing and redaction utilities."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlparse

# Scheme prefixes accepted for each dialect; "postgresql+psycopg" style
# driver suffixes are stripped before lookup.
_SCHEME_DIALECTS = {
    "postgres": "postgresql",
    "postgresql": "postgresql",
    "mysql": "mysql",
    "mariadb": "mysql",
    "sqlite": "sqlite",
    "sqlite3": "sqlite",
}


@dataclass
class DSNConfig:
    driver: str
    username: Optional[str]
    password: Optional[str]
    host: Optional[str]
    port: Optional[int]
    database: Optional[str]
    path: str
    query: dict[str, str] = field(default_factory=dict)

    @property
    def dialect_name(self) -> str:
        base = self.driver.split("+", 1)[0].lower()
        return _SCHEME_DIALECTS.get(base, base)

    def redacted(self) -> str:
        """
        Return the DSN with the password masked and sensitive options hidden.
        """
        netloc = ""
        if self.username:
            netloc = self.username + (":***" if self.password else "") + "@"
        if self.host:
            netloc += self.host
        if self.port:
            netloc += f":{self.port}"
        result = f"{self.driver}://{netloc}{self.path or ''}"
        if self.query:
            from .redaction import redact_query_params

            result += "?" + urlencode(redact_query_params(self.query))
        return result


def parse_dsn(dsn: str) -> DSNConfig:
    parsed = urlparse(dsn)
    query = {key: values[0] for key, values in parse_qs(parsed.query).items()}
    return DSNConfig(
        driver=parsed.scheme,
        username=parsed.username,
        password=parsed.password,
        host=parsed.hostname,
        port=parsed.port,
        database=parsed.path.lstrip("/") or None,
        path=parsed.path or "",
        query=query,
    )


def dsn_from_env(env_var: str) -> DSNConfig:
    value = os.getenv(env_var)
    if not value:
        raise ValueError(f"Environment variable {env_var} is not set")
    return parse_dsn(value)
