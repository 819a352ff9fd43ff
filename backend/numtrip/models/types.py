from ..extensions import db

# BIGINT keys on Postgres; SQLite only autoincrements an INTEGER PRIMARY KEY
BigInt = db.BigInteger().with_variant(db.Integer(), "sqlite")
