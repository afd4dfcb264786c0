from decimal import Decimal

from sqlalchemy.types import Float, TypeDecorator


class DecimalReal(TypeDecorator):
    """Decimal in Python, REAL in SQLite (the column type the store was released with)."""

    impl = Float
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return float(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        # str() of a float is its shortest round-trip repr: 2.25 -> Decimal("2.25")
        return Decimal(str(value))
