def format_eur(amount) -> str:
    """
    Format a number (float or Decimal) as Euro currency.
    """
    return f"€{float(amount):.2f}"
