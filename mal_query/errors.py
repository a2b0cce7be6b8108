"""Exception hierarchy for mal-query.

Every failure raised by the library derives from MalQueryError so callers
can catch one type. Subclasses separate the failure kinds:

    TransportError              network/DNS/TLS failure
    RequestFailedError          non-2xx HTTP status
    SchemaError                 unexpected JSON shape
    ValidationError             rejected input before a request is built
    AuthenticationRequiredError write attempted without a token
    InvalidUrlError             URL lookup without a numeric id
    LoginError                  OAuth login failure (see mal_query.oauth)
"""


class MalQueryError(Exception):
    """Base error for all mal-query failures."""

    pass


class TransportError(MalQueryError):
    """Network failure while talking to the API."""

    pass


class RequestFailedError(MalQueryError):
    """The API answered with a non-2xx status.

    Attributes:
        status_code: HTTP status returned by the API
        body: Response body text, if any
    """

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        message = f"Request failed with status {status_code}"
        if body:
            message = f"{message}: {body[:500]}"
        super().__init__(message)


class SchemaError(MalQueryError):
    """Response JSON did not match the expected shape."""

    pass


class ValidationError(MalQueryError, ValueError):
    """Input was rejected before being added to a request."""

    pass


class AuthenticationRequiredError(MalQueryError):
    """Operation needs a user token but none is loaded."""

    pass


class InvalidUrlError(MalQueryError, ValueError):
    """URL does not contain a usable anime id."""

    pass


class LoginError(MalQueryError):
    """The OAuth login flow failed."""

    pass
