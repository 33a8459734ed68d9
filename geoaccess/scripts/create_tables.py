# create_tables.py

from geoaccess.core.database import engine
from geoaccess.models.auth import Base
import geoaccess.models.auth  # noqa: F401
import geoaccess.models.access  # noqa: F401

Base.metadata.create_all(bind=engine)
print("Tables created")
