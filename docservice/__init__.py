"""
docservice is a data-access adapter: a fixed set of CRUD operations over documents,
stored with [SqlAlchemy](http://www.sqlalchemy.org/).

Every operation accepts a query dict: filtering conditions, mixed with special `$`-directives:

```python
await users.find({'query': {
    'age': {'$gte': 18},  # filter: age >= 18
    '$select': 'id name',  # only load these fields
    '$populate': 'tags',  # load related tags
    '$sort': '-createdAt',  # sort by `created_at` DESC
    '$limit': 10,  # limit to 10 rows
}})
```

Documents may have collections: lists of embedded documents, or of documents referenced by their ids.
Those are handled by the `*_in_collection` operations.
"""

# Exceptions that are used here and there
from .exc import *

# Column types
from .types import EmbeddedDocumentArray, EMBEDDED_ID_KEY

# All the information about the properties of your models is handled by the following class:
from .bag import ModelPropertyBags, CombinedBag, FieldKind, FieldDescriptor

# The handlers: that's where the query dict is converted to actual SqlAlchemy queries
from . import handlers

# ServiceQuery takes the query dict apart and applies the handlers
from .query import ServiceQuery, extract_specials, prepare_query, SPECIAL_KEYS

# Collections
from .resolver import is_existing_collection, is_embedded_collection, is_referenced_collection, \
    resolve_associated_model

# CrudHelper builds instances from incoming documents
from .crud import CrudHelper

# Documents are returned as dicts
from .serialize import instance_to_dict, instances_to_dicts

# The facade
from .service import Service, ServiceRegistry

# Helpers
from .util import Reusable, ServiceSettingsDict
