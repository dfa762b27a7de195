from uuid import uuid4

from sqlalchemy import JSON, TypeDecorator
from sqlalchemy.dialects import postgresql as pg


#: The key that identifies an item within an embedded collection
EMBEDDED_ID_KEY = 'id'


class EmbeddedDocumentArray(TypeDecorator):
    """ A column that keeps a collection of embedded documents: a list of objects

        Every embedded document has its own identifier under the `EMBEDDED_ID_KEY` key,
        which is generated when a document without one is added to the collection.

        Example:

            class User(Base):
                addresses = Column(EmbeddedDocumentArray, default=list)

        On PostgreSQL, the value is stored as JSONB; on other databases, as JSON.
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(pg.JSONB())
        return dialect.type_descriptor(JSON())


def new_embedded_id() -> str:
    """ Generate an identifier for an embedded document """
    return uuid4().hex
