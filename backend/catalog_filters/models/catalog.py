from sqlalchemy import Column, Date, String
from sqlalchemy.dialects.postgresql import JSONB

from catalog_filters.core.config import settings
from catalog_filters.db.base import Base


class CatalogPhoto(Base):
    """Read-only mapping of the denormalised catalog view the app lists and filters."""

    __tablename__ = settings.CATALOG_VIEW_NAME

    image_no = Column(String, primary_key=True)
    description = Column(String, nullable=True)
    category = Column(String, nullable=True)
    photographer = Column(String, nullable=True)
    location = Column(String, nullable=True)
    organisation = Column(String, nullable=True)
    organisation_type = Column(String, nullable=True)
    collection = Column(String, nullable=True)
    gauge = Column(String, nullable=True)
    country = Column(String, nullable=True)
    type_of_industry = Column(String, nullable=True)
    active_area = Column(String, nullable=True)
    route = Column(String, nullable=True)
    corporate_body = Column(String, nullable=True)
    facility = Column(String, nullable=True)
    builders = Column(JSONB, nullable=True)  # [{"builder_id", "builder_name", "works_number"}, ...]
    date_taken = Column(Date, nullable=True, index=True)
