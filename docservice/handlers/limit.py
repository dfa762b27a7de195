"""
### $limit, $skip

`$limit` and `$skip` become `LIMIT` and `OFFSET`: a page of documents.

* `$limit`: how many documents to return at most
* `$skip`: how many documents to pass over first

Example:

```javascript
{
    $limit: 100, // 100 items per page
    $skip: 200,  // skip 200 items, meaning, we're on the third page
}
```

Values: a number, a string of digits (as it comes from a URL query string), or a `null`.
Zero and negative values are ignored.
"""

from .base import QueryHandlerBase
from ..exc import InvalidQueryError


def _parse_positive_int(name, value):
    """ Parse a $limit / $skip value into a positive int, or None """
    # Empty
    if value is None or value == '':
        return None

    # Strings of digits come from query strings
    if isinstance(value, str):
        value = value.strip()
        if not value.lstrip('-').isdigit():
            raise InvalidQueryError('{} must be an integer; {!r} provided'.format(name, value))
        value = int(value)

    # Validate
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQueryError('{} must be either an integer, or null'.format(name))

    # Clamp
    return None if value <= 0 else value


class SkipHandler(QueryHandlerBase):
    """ $skip: OFFSET for the query """

    query_object_section_name = '$skip'

    def __init__(self, model, bags):
        super(SkipHandler, self).__init__(model, bags)

        # On input
        self.skip = None

    def _get_supported_bags(self):
        return None  # validates no names

    def input(self, skip):
        super(SkipHandler, self).input(skip)
        self.skip = _parse_positive_int(self.query_object_section_name, skip)
        return self

    def alter_query(self, query):
        """ Apply offset() to the query """
        if self.skip:
            query = query.offset(self.skip)
        return query

    def get_final_input_value(self):
        return self.skip


class LimitHandler(QueryHandlerBase):
    """ $limit: LIMIT for the query """

    query_object_section_name = '$limit'

    def __init__(self, model, bags, max_items=None, default_limit=None):
        """ Init a limit

        :param max_items: A hard cap on the number of documents.
            Every query gets it, and a larger $limit is reduced to it.
        :param default_limit: The limit to use when the user has not provided any.
        """
        super(LimitHandler, self).__init__(model, bags)

        # Config
        self.max_items = max_items
        self.default_limit = default_limit
        assert self.max_items is None or self.max_items > 0
        assert self.default_limit is None or self.default_limit > 0

        # On input
        self.limit = None

    def _get_supported_bags(self):
        return None  # validates no names

    def input(self, limit):
        super(LimitHandler, self).input(limit)
        limit = _parse_positive_int(self.query_object_section_name, limit)

        # Default
        if limit is None:
            limit = self.default_limit

        # Max limit
        if self.max_items:
            limit = min(self.max_items, limit or self.max_items)

        # Done
        self.limit = limit
        return self

    def alter_query(self, query):
        """ Apply limit() to the query """
        if self.limit:
            query = query.limit(self.limit)
        return query

    def get_final_input_value(self):
        return self.limit
