# import models so Base.metadata knows every table (used by init_db, tests and alembic)
from app.db.base_class import Base  # noqa: F401
from app.models import clone, discussion, school, user  # noqa: F401
