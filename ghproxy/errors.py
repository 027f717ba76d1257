class ProxyError(Exception):
    """Base for every failure that ends a proxied request with an error status."""

    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class MalformedTarget(ProxyError):
    status_code = 400


class UnparseableURL(ProxyError):
    status_code = 400


class UnsupportedPath(ProxyError):
    status_code = 400


class DisallowedHost(ProxyError):
    status_code = 403


class DisallowedRedirect(DisallowedHost):
    pass


class UpstreamError(ProxyError):
    status_code = 500


class ResponseTooLarge(ProxyError):
    status_code = 413
