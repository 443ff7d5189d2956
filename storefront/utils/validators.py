from storefront.constants import MIN_PASSWORD_LENGTH
from storefront.errors import ValidationError


def validate_registration(password: str, confirm_password: str) -> None:
    if password != confirm_password:
        raise ValidationError("Passwords do not match")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def require_positive_int(v: str, name: str = "value") -> int:
    try:
        n = int(v.strip())
    except (AttributeError, ValueError):
        raise ValidationError(f"{name} must be a whole number") from None
    if n <= 0:
        raise ValidationError(f"{name} must be > 0")
    return n
