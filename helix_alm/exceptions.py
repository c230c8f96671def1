# helix_alm/exceptions.py


class HelixALMError(Exception):
    """Base exception for Helix ALM client errors."""

    pass


class ConfigurationError(HelixALMError):
    """Exception raised for errors in the configuration."""

    pass


class MissingTokenError(HelixALMError):
    """Exception raised when a bearer header is needed but no token is held."""

    pass


class CodecError(HelixALMError):
    """Exception raised when JSON cannot be encoded or mapped onto a model."""

    def __init__(self, message, path=None):
        self.message = message
        self.path = path
        if path:
            message = f"{message} (at {path})"
        super().__init__(message)


class TransportError(HelixALMError):
    """Exception raised when the request never produced an HTTP response."""

    def __init__(self, message, url=None):
        self.message = message
        self.url = url
        super().__init__(self.message)


class HelixALMAPIError(HelixALMError):
    """Exception raised for error responses from the Helix ALM REST API."""

    def __init__(self, message, status_code=None, response=None):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)


class HttpStatusError(HelixALMAPIError):
    """Non-2xx response whose body is not an error envelope."""

    def __init__(self, status_code, body=""):
        self.body = body
        message = f"HTTP Error: {status_code}"
        if body:
            message = f"{message}, body='{body[:500]}'"
        super().__init__(message, status_code=status_code, response=body)


class ApiError(HelixALMAPIError):
    """Non-2xx response carrying an error envelope."""

    def __init__(
        self,
        message,
        status_code=None,
        code=None,
        error_element_path=None,
        errors=None,
    ):
        self.code = code
        self.error_element_path = error_element_path
        self.errors = errors or []
        detail = f"HTTP Error: {status_code}, code='{code}', message='{message}'"
        if error_element_path:
            detail += f", path='{error_element_path}'"
        super().__init__(message, status_code=status_code, response=self.errors)
        self.args = (detail,)


class PartialUpdateError(HelixALMAPIError):
    """A write succeeded for some items but the server reported errors for others.

    ``response`` holds the decoded update response, i.e. whatever did save.
    """

    def __init__(self, errors, response=None, status_code=None):
        self.errors = errors
        details = "; ".join(
            f"{error.code or error.status_code}: {error.message}"
            + (f" ({error.error_element_path})" if error.error_element_path else "")
            for error in errors
        )
        super().__init__(
            f"Partial update, {len(errors)} error(s): {details}",
            status_code=status_code,
            response=response,
        )


class FieldNotFoundError(HelixALMError):
    """Exception raised when an item does not carry the requested field."""

    pass


class FieldTypeError(HelixALMError, TypeError):
    """Exception raised when a field is given a value of another kind."""

    pass


class MissingItemIdError(HelixALMError, ValueError):
    """Exception raised when an item must be saved but carries no id."""

    pass
