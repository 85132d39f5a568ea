from sqlalchemy import Column, String

from catalog_filters.db.base import Base


class Photographer(Base):
    __tablename__ = "photographer"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=True)


class Location(Base):
    __tablename__ = "location"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=True)


class Organisation(Base):
    __tablename__ = "organisation"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=True)
    type = Column(String, nullable=True)


class Collection(Base):
    __tablename__ = "collection"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=True)
    owner = Column(String, nullable=True)


class Country(Base):
    __tablename__ = "country"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=True)


class Route(Base):
    __tablename__ = "route"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=True)


class Builder(Base):
    __tablename__ = "builder"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=True)
    code = Column(String, nullable=True)
