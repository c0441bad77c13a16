from __future__ import annotations


class PortalError(RuntimeError):
    """
    Base class for failures a caller can act on.

    `hint` is a short remediation message (which env var to set, which file to check) that the CLI
    prints instead of a traceback.
    """

    hint: str = ""

    def __init__(self, message: str, *, hint: str = "") -> None:
        super().__init__(message)
        if hint:
            self.hint = hint

    def __str__(self) -> str:
        msg = super().__str__()
        if self.hint:
            return f"{msg} {self.hint}"
        return msg


class PortalConfigError(PortalError):
    hint = "Set PORTAL_USERNAME and PORTAL_PASSWORD in your .env file (or portal.username/portal.password in YAML)."


class LoginFailedError(PortalError):
    """Login attempt did not reach an authenticated page. A diagnostic screenshot has been saved."""

    def __init__(self, message: str, *, screenshot: str = "", hint: str = "") -> None:
        self.screenshot = screenshot
        if screenshot and not hint:
            hint = f"Screenshot: {screenshot}"
        super().__init__(message, hint=hint)


class LoginFormNotFoundError(LoginFailedError):
    """Username and/or password inputs were not found on the login page."""


class SubmitControlNotFoundError(LoginFailedError):
    """Credentials were filled but no visible submit control was found."""


class LoginRejectedError(LoginFailedError):
    """The login form is still present after submitting credentials."""


class SessionExpiredError(PortalError):
    hint = "The stored session was deleted. Run `login` again, then retry the original command."


class DownloadError(PortalError):
    def __init__(self, message: str, *, status_code: int = 0, url: str = "", hint: str = "") -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message, hint=hint)
