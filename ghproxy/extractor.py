import logging
import re
from urllib.parse import quote, unquote, urlsplit

from ghproxy.errors import MalformedTarget, UnparseableURL

logger = logging.getLogger(__name__)

SCHEMES = ("https", "http")

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def raw_request_target(environ):
    """Return the request-target exactly as the client sent it.

    Routers and WSGI servers clean PATH_INFO (decoding it and sometimes
    merging slashes), which breaks the ``scheme://host`` embedded in the
    path, so the raw URI set by the server is preferred.
    """
    query = environ.get("QUERY_STRING")
    for key in ("RAW_URI", "REQUEST_URI"):
        value = environ.get(key)
        if value:
            if query and "?" not in value:
                value = f"{value}?{query}"
            return value

    target = quote(environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", ""), safe="/:@!$&'()*+,;=~")
    if query:
        target = f"{target}?{query}"
    return target


def _unescape(value):
    if _BAD_ESCAPE.search(value):
        return None
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return None


def extract_target(raw):
    """Recover the upstream URL embedded in a request-target.

    Returns ``None`` when nothing follows the leading slash.
    """
    path = raw[1:] if raw.startswith("/") else raw
    if not path:
        return None

    decoded = _unescape(path)
    if decoded is not None and decoded != path:
        logger.debug("decoded target: %s", decoded)
        path = decoded

    # A slash-merging router turns ".../https://host" into ".../https:/host"
    for scheme in SCHEMES:
        if path.startswith(f"{scheme}:/") and not path.startswith(f"{scheme}://"):
            path = f"{scheme}://" + path[len(scheme) + 2:]
            logger.debug("repaired %s separator: %s", scheme, path)
            break

    if ":/" in path and "://" not in path:
        parts = path.split(":/")
        if len(parts) == 2 and parts[0] in SCHEMES and not parts[1].startswith("/"):
            path = f"{parts[0]}://{parts[1]}"
            logger.debug("repaired scheme separator: %s", path)

    if not path.startswith(("http://", "https://")):
        raise MalformedTarget("invalid URL format, please use a complete http:// or https:// URL")
    return path


def parse_target(target):
    try:
        url = urlsplit(target)
        # accessing port validates it
        url.port
    except ValueError as e:
        raise UnparseableURL(f"failed to parse URL: {e}")

    if url.scheme not in SCHEMES or not url.hostname:
        raise UnparseableURL(f"failed to parse URL: {target}")
    return url
