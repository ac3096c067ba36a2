"""Parse the magic link Forma emails at login."""

from urllib.parse import parse_qs, unquote, urlparse

from forma_claims.errors import InvalidMagicLinkError

MAGIC_LINK_HOST = "joinforma.page.link"


def parse_magic_link(emailed_link: str) -> tuple[str, str]:
    """Return the `(id, tk)` pair carried by an emailed magic link.

    The emailed URL is a `https://joinforma.page.link/?link=...` redirect
    whose `link` parameter is the real, URL-encoded login URL.
    """
    outer = urlparse(emailed_link.strip())
    if outer.scheme != "https" or outer.hostname != MAGIC_LINK_HOST or outer.path not in ("", "/"):
        raise InvalidMagicLinkError()

    link_values = parse_qs(outer.query).get("link")
    if not link_values:
        raise InvalidMagicLinkError()

    inner = urlparse(unquote(link_values[0]))
    inner_query = parse_qs(inner.query)
    link_id = inner_query.get("id", [""])[0]
    link_token = inner_query.get("tk", [""])[0]
    if not link_id or not link_token:
        raise InvalidMagicLinkError()
    return link_id, link_token
