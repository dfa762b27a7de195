"""
### $sort

`$sort` becomes the `ORDER BY` clause.

Syntax:

* String syntax: field names separated by whitespace, each optionally prefixed with
  `-` for `DESC` or `+` for `ASC`. The default is `ASC`.

    ```javascript
    { $sort: '-createdAt name' }  // -> created_at DESC, name ASC
    ```

* Array syntax: a list of such field names

    ```javascript
    { $sort: ['-createdAt', 'name'] }
    ```

* Object syntax: `{ field: direction }`, where direction is one of `1`, `-1`, `'asc'`, `'desc'`.
  Key order is preserved.

    ```javascript
    { $sort: { createdAt: -1, name: 1 } }
    ```
"""

from .base import QueryHandlerBase
from ..exc import InvalidQueryError


class SortHandler(QueryHandlerBase):
    """ $sort: ORDER BY

        * None: no sorting
        * '-a b +c': whitespace-separated fields, `-` for descending
        * ['-a', 'b', '+c']
        * {a: -1, b: 1}, {a: 'desc', b: 'asc'}

        Supports: Columns
    """

    query_object_section_name = '$sort'

    # Named directions
    _DIRECTIONS = {
        1: +1, -1: -1,
        '1': +1, '-1': -1,
        'asc': +1, 'desc': -1,
        'ascending': +1, 'descending': -1,
    }

    def __init__(self, model, bags):
        super(SortHandler, self).__init__(model, bags)

        # On input
        #: dict() of a sort spec: {key: +1|-1}, ordered
        self.sort_spec = None

    def _get_supported_bags(self):
        return self.bags.columns

    def _input(self, spec):
        # Empty
        if not spec:
            return {}

        # String syntax
        if isinstance(spec, str):
            spec = spec.split()

        # List: every item is a "[+-]column"
        if isinstance(spec, (list, tuple)):
            if not all(isinstance(v, str) and v.lstrip('+-') for v in spec):
                raise InvalidQueryError('{} list must only contain field names'
                                        .format(self.query_object_section_name))
            spec = dict(
                (v[1:], -1 if v[0] == '-' else +1)
                if v[0] in {'+', '-'}
                else (v, +1)
                for v in spec
            )
        # Dict: map directions
        elif isinstance(spec, dict):
            try:
                spec = {name: self._DIRECTIONS[d.lower() if isinstance(d, str) else d]
                        for name, d in spec.items()}
            except (KeyError, TypeError):
                raise InvalidQueryError('{} direction can be either 1, -1, "asc", or "desc"'
                                        .format(self.query_object_section_name))
        else:
            raise InvalidQueryError('{name} must be either a list, a string, or an object; {type} provided.'
                                    .format(name=self.query_object_section_name, type=type(spec)))

        # Validate columns
        self.validate_properties(spec.keys())
        return spec

    def input(self, sort_spec):
        super(SortHandler, self).input(sort_spec)
        self.sort_spec = self._input(sort_spec)
        return self

    def compile_columns(self):
        return [
            self.supported_bags[name].desc() if d == -1 else self.supported_bags[name]
            for name, d in self.sort_spec.items()
        ]

    def alter_query(self, query):
        if not self.sort_spec:
            return query
        return query.order_by(*self.compile_columns())

    def get_final_input_value(self):
        return ['{}{}'.format('-' if d == -1 else '', name)
                for name, d in self.sort_spec.items()]
