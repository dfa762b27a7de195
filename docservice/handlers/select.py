"""
### $select

Selects the fields to be loaded: corresponds to the list of columns in `SELECT ... FROM`.

* Inclusion mode: only load the listed fields

    ```javascript
    { $select: 'name age' }
    { $select: ['name', 'age'] }
    ```

* Exclusion mode: load everything but the listed fields. Every name has to be prefixed with `-`:

    ```javascript
    { $select: '-data -addresses' }
    ```

The primary key is always loaded: it's required to identify the document.
Mixing inclusion and exclusion is an error.
"""

from sqlalchemy.orm import load_only, defer

from .base import QueryHandlerBase
from ..exc import InvalidQueryError


class SelectHandler(QueryHandlerBase):
    """ $select: the list of columns to load

        Supports: Columns
    """

    query_object_section_name = '$select'

    MODE_INCLUDE = 1
    MODE_EXCLUDE = 0

    def __init__(self, model, bags):
        super(SelectHandler, self).__init__(model, bags)

        # On input
        #: Projection mode: MODE_INCLUDE, MODE_EXCLUDE, or None when there's no projection
        self.mode = None
        #: The list of field names, without the `-` prefix
        self.names = ()

    def _get_supported_bags(self):
        return self.bags.columns

    def input(self, projection):
        super(SelectHandler, self).input(projection)

        # Empty
        if not projection:
            return self

        # String syntax
        if isinstance(projection, str):
            projection = projection.split()

        # Validate
        if not isinstance(projection, (list, tuple)) or not all(isinstance(v, str) and v for v in projection):
            raise InvalidQueryError('{} must be either a string, or a list of strings'
                                    .format(self.query_object_section_name))

        # Mode
        excluded = [name.startswith('-') for name in projection]
        if all(excluded):
            self.mode = self.MODE_EXCLUDE
            names = [name[1:] for name in projection]
        elif not any(excluded):
            self.mode = self.MODE_INCLUDE
            names = list(projection)
        else:
            raise InvalidQueryError('{} cannot mix inclusion and exclusion'
                                    .format(self.query_object_section_name))

        # Validate columns
        self.validate_properties(names)
        self.names = tuple(names)
        return self

    @property
    def projection(self):
        """ The projection as a dict: {name: 0|1} """
        return {name: self.mode for name in self.names}

    def compile_columns(self):
        """ Get the list of columns that will be loaded """
        if self.mode == self.MODE_INCLUDE:
            # Listed columns + primary key
            names = set(self.names) | self.bags.pk.names
        elif self.mode == self.MODE_EXCLUDE:
            names = self.bags.columns.names - set(self.names) | self.bags.pk.names
        else:
            names = self.bags.columns.names
        return [column
                for name, column in self.bags.columns
                if name in names]

    def compile_options(self):
        """ Get the list of loader options: load_only() or defer() """
        if self.mode == self.MODE_INCLUDE:
            return [load_only(*self.compile_columns())]
        elif self.mode == self.MODE_EXCLUDE:
            return [defer(self.bags.columns[name])
                    for name in self.names
                    if name not in self.bags.pk]  # primary keys are never deferred
        else:
            return []

    def alter_query(self, query):
        options = self.compile_options()
        if not options:
            return query  # short-circuit
        return query.options(*options)

    def get_final_input_value(self):
        if self.mode == self.MODE_EXCLUDE:
            return ['-' + name for name in self.names]
        return list(self.names)
