from .catalog import CatalogPhoto
from .lookups import Builder, Collection, Country, Location, Organisation, Photographer, Route
