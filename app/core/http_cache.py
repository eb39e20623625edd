from math import ceil

NO_STORE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def build_etag(created_at: float) -> str:
    return f'"{int(created_at * 1000)}"'


def build_cache_headers(cacheable: bool, max_age: float = 300, etag: str | None = None) -> dict[str, str]:
    if not cacheable:
        return dict(NO_STORE_HEADERS)

    seconds = int(ceil(max_age))
    headers = {
        "Cache-Control": f"public, max-age={seconds}, s-maxage={seconds * 2}, stale-while-revalidate={seconds * 2}",
        "Vary": "Authorization, Accept-Encoding",
    }
    if etag:
        headers["ETag"] = etag
    return headers
