"""Input helpers shared by the catalog services."""

from melodia.domain.exceptions import ValidationException


def require_id(value: str | None, field: str, label: str) -> str:
    """Strip an id and reject blanks with ``ValidationException(field)``."""
    if not value or not value.strip():
        raise ValidationException(f"{label} is required", field=field)
    return value.strip()


def clamp(limit: int, upper: int) -> int:
    """Clamp a caller-supplied list limit into ``1..upper``."""
    return min(max(limit, 1), upper)
