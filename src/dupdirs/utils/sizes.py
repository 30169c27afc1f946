"""Human-readable byte sizes with binary multiples ("10MB" == 10 * 1024 ** 2)."""

from ..errors import ConfigError

UNITS = ('B', 'KB', 'MB', 'GB', 'TB', 'PB', 'EB')
_MULTIPLIERS = {unit: 1 << (10 * i) for i, unit in enumerate(UNITS)}


def parse_size(size: str) -> int:
    """Convert a size string into bytes.

    The string is a run of decimal digits immediately followed by one of
    UNITS, case-insensitive.

    Raises:
        ConfigError: The string does not start with a digit, or the unit is unknown
    """
    digits = 0
    while digits < len(size) and '0' <= size[digits] <= '9':
        digits += 1

    if digits == 0:
        raise ConfigError(f"{size!r}: first character should be a number")

    unit = size[digits:].upper()
    if unit not in _MULTIPLIERS:
        raise ConfigError(f"{unit!r} is not a valid unit {list(UNITS)}")

    return int(size[:digits]) * _MULTIPLIERS[unit]


def format_size(size: int) -> str:
    """Render bytes with the largest unit that divides them exactly."""
    for unit in reversed(UNITS):
        multiplier = _MULTIPLIERS[unit]
        if size >= multiplier and size % multiplier == 0:
            return f"{size // multiplier}{unit}"
    return f"{size}B"
