from sqlalchemy import BigInteger, Integer, Numeric

# Use BigInteger by default, with a SQLite-safe Integer variant for autoincrement PKs.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")

# Currency amounts: two decimal places, returned as ``decimal.Decimal``.
MONEY_TYPE = Numeric(12, 2, asdecimal=True)
