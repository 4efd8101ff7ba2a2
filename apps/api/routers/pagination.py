"""Link header helpers for cursor-paginated list endpoints."""

from typing import Optional

from fastapi import Request, Response


def set_next_link(request: Request, response: Response, next_cursor: Optional[str]) -> None:
    """Advertise the next page the way RFC 8288 clients expect."""
    current = str(request.url.remove_query_params("cursor"))
    links = [f'<{current}>; rel="first"']
    if next_cursor:
        next_url = str(request.url.include_query_params(cursor=next_cursor))
        links.insert(0, f'<{next_url}>; rel="next"')
    response.headers["Link"] = ", ".join(links)
