from sqlalchemy.orm import declarative_base

# Shared metadata for every table (Alembic env and tests import it from here).
Base = declarative_base()
