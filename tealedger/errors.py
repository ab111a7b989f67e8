class TeaLedgerError(Exception):
    """Base class for errors raised by the service layer."""


class NotFound(TeaLedgerError):
    """A lookup by identity (grower, invoice, rate card id) found nothing."""


class InvalidInput(TeaLedgerError):
    """A write or calculation was asked for with malformed fields."""


def check_period(year: int, month: int) -> None:
    if not 1 <= int(month) <= 12:
        raise InvalidInput(f"month must be between 1 and 12, got {month}")
    if int(year) < 1:
        raise InvalidInput(f"invalid year {year}")
