"""
Client metadata pulled from the incoming request.
"""

from __future__ import annotations

from fastapi import Request


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first[:45]
    if request.client is not None and request.client.host:
        return request.client.host[:45]
    return None


def user_agent(request: Request) -> str:
    return request.headers.get("user-agent", "")
