"""Exceptions raised while talking to Forma and validating claims."""


class FormaError(Exception):
    """Base class for every error reported to the user by the CLI."""


class InvalidUsageError(FormaError):
    """The command was called with a combination of options it can't act on."""


class NotLoggedInError(FormaError):
    def __init__(self) -> None:
        super().__init__("You aren't logged in to Forma. Please run `forma-claims login` first.")


class BenefitNotFoundError(FormaError):
    def __init__(self, benefit_name: str) -> None:
        super().__init__(f"Could not find benefit with name `{benefit_name}`.")
        self.benefit_name = benefit_name


class ClaimValidationError(FormaError):
    """A claim field failed validation before submission."""


class CategoryNotFoundError(ClaimValidationError):
    def __init__(self, benefit_name: str, category_text: str) -> None:
        super().__init__(f"No category '{category_text}' found for benefit '{benefit_name}'.")
        self.benefit_name = benefit_name
        self.category_text = category_text


class InvalidDateFormatError(ClaimValidationError):
    def __init__(self, purchase_date: str) -> None:
        super().__init__(f"Purchase date must be in YYYY-MM-DD format, got '{purchase_date}'.")
        self.purchase_date = purchase_date


class InvalidAmountFormatError(ClaimValidationError):
    def __init__(self, amount: str) -> None:
        super().__init__(f"Amount must be in the format 0.00, got '{amount}'.")
        self.amount = amount


class ReceiptNotFoundError(ClaimValidationError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Receipt path '{path}' does not exist.")
        self.path = path


class HttpStatusError(FormaError):
    """Forma answered with a status code other than the one the call expects."""

    def __init__(self, action: str, status_code: int, reason: str, detail: str | None = None) -> None:
        self.action = action
        self.status_code = status_code
        self.reason = reason
        self.detail = detail
        super().__init__(self._message())

    def _message(self) -> str:
        message = f"Something went wrong while {self.action} - got `{self.status_code} {self.reason}`."
        if self.detail:
            message += f" {self.detail}"
        return message


class AuthTokenInvalidError(HttpStatusError):
    def _message(self) -> str:
        return "Your Forma access token is invalid. Please log in again with `forma-claims login`."


class UnexpectedResponseError(FormaError):
    """Forma returned a success status but the body says the request failed."""


class InvalidMagicLinkError(FormaError):
    def __init__(self) -> None:
        super().__init__("The provided link doesn't look like a real Forma magic link.")


class InvalidCsvError(FormaError):
    """The claims CSV is missing, empty or has unexpected headers."""


class InferenceError(FormaError):
    """Claude could not produce a usable answer for a claim."""
