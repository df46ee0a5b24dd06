from typing import Annotated

from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, BeforeValidator
from pydantic_core import PydanticCustomError


def _strip(value: object) -> object:
    return value.strip() if isinstance(value, str) else value


def validate_contact_email(value: str) -> str:
    """Check the address but keep it exactly as the customer typed it.

    Inbound replies are matched against the stored address verbatim, so the
    normalized form from email-validator is discarded.
    """
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise PydanticCustomError(
            "value_error",
            "value is not a valid email address: {reason}",
            {"reason": str(exc)},
        ) from exc
    return value


ContactEmailStr = Annotated[str, BeforeValidator(_strip), AfterValidator(validate_contact_email)]
