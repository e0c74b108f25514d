"""Currency formatting for whole-unit amounts."""


def _group(amount: int, sep: str) -> str:
    return f"{amount:,}".replace(",", sep)


def format_price(amount: int | float, currency: str = "IDR") -> str:
    """
    Format a non-negative whole-unit amount for display.

    IDR uses Indonesian grouping with no fraction digits ("Rp 3.799.000").
    USD uses US grouping with cents ("$1,234.00"). Any other code is shown
    as "<CODE> 1.234".

    Raises:
        ValueError: If amount is negative or not integral. Callers format
            discounts by prefixing "-" to the formatted magnitude.
    """
    if isinstance(amount, float):
        if not amount.is_integer():
            raise ValueError(f"Amount must be a whole number, got {amount}")
        amount = int(amount)
    if amount < 0:
        raise ValueError(f"Amount must not be negative, got {amount}")

    currency = currency.upper()
    if currency == "IDR":
        return f"Rp {_group(amount, '.')}"
    if currency == "USD":
        return f"${amount:,}.00"
    return f"{currency} {_group(amount, '.')}"
