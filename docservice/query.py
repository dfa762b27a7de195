"""
The query dict is what the service receives as `params['query']`:
a dict of filtering conditions, mixed with special `$`-directives.

ServiceQuery takes it apart: the directives go to their handlers, everything else goes to the filter.
Then, the handlers alter an sqlalchemy Query one by one, in a fixed order:

1. filter
2. `$select`
3. `$populate`
4. `$sort`
5. `$skip`
6. `$limit`

The order does not depend on the order of keys in the query dict.
"""

from copy import copy
from typing import Mapping, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Query

from .bag import ModelPropertyBags
from . import handlers
from .exc import InvalidQueryError
from .util import ServiceSettingsHandler


#: The special keys of the query dict, in the order they're applied
SPECIAL_KEYS = ('$select', '$populate', '$sort', '$skip', '$limit')


def extract_specials(query_dict: dict) -> dict:
    """ Remove the special `$`-directives from the query dict

        All of them are removed, even those with empty values: the dict that remains is a pure filter.
        Only the non-empty ones are returned: an empty value (0, '', None, []) is same as no value at all.

        :param query_dict: The query dict. It's modified in-place!
        :return: {'$sort': ..., '$limit': ...}
    """
    specials = {key: query_dict.pop(key, None) for key in SPECIAL_KEYS}
    return {key: value
            for key, value in specials.items()
            if value}


def prepare_query(query: Query, specials: Mapping, model: Optional[type] = None, **handler_settings) -> Query:
    """ Apply the special `$`-directives to an sqlalchemy Query

        Unknown keys are ignored. Empty values are ignored.

        :param query: The query to alter
        :param specials: The directives: {'$sort': ..., '$limit': ...}
        :param model: The model the query is made to. Default: the first entity of the query.
        :param handler_settings: Settings for ServiceQuery
        :return: A new Query
    """
    if model is None:
        model = query.column_descriptions[0]['entity']
    specials = {key: value
                for key, value in specials.items()
                if key in SPECIAL_KEYS}
    return ServiceQuery(model, handler_settings).from_query(query).query(specials).end()


class ServiceQuery:
    """ A query to a model, built from a query dict

        Example:

            ServiceQuery(User).with_session(ssn).query({'age': {'$gte': 18}, '$sort': '-age'}).end().all()

        A ServiceQuery takes one query dict only. To build many queries with the same settings,
        wrap it into Reusable(): every call then works on a fresh copy.
    """

    _MODEL_PROPERTY_BAGS_CLS = ModelPropertyBags

    #: (handler name, query dict key, handler class), in the order the handlers alter the query.
    #: The filter has no key: it gets whatever is left of the query dict.
    #: skip and limit come last: anything applied after them would need a subquery.
    HANDLERS = (
        ('filter', None, handlers.FilterHandler),
        ('select', '$select', handlers.SelectHandler),
        ('populate', '$populate', handlers.PopulateHandler),
        ('sort', '$sort', handlers.SortHandler),
        ('skip', '$skip', handlers.SkipHandler),
        ('limit', '$limit', handlers.LimitHandler),
    )

    handler_filter = None  # type: handlers.FilterHandler
    handler_select = None  # type: handlers.SelectHandler
    handler_populate = None  # type: handlers.PopulateHandler
    handler_sort = None  # type: handlers.SortHandler
    handler_skip = None  # type: handlers.SkipHandler
    handler_limit = None  # type: handlers.LimitHandler

    def __init__(self, model: type, handler_settings: dict = None):
        """ Prepare a query to a model

        :param model: The sqlalchemy model. Not an alias.
        :param handler_settings: One flat dict with the settings of all handlers.
            Every handler takes the keys that match the keyword arguments of its __init__();
            `<name>_enabled=False` turns a handler off, e.g. `populate_enabled=False`.
            A key that no handler takes is an error.
            ServiceSettingsDict lists them all.
        :type handler_settings: dict | ServiceSettingsDict | None
        """
        if inspect(model).is_aliased_class:
            raise AssertionError('ServiceQuery does not accept aliases')

        self._model = model
        self._bags = self._MODEL_PROPERTY_BAGS_CLS.for_model(model)

        self._handler_settings = ServiceSettingsHandler(handler_settings or {})
        self._handler_settings.validate_related_settings(self._bags)

        #: The Query given to from_query(), if any
        self._query = None  # type: Query | None

        for name, key, handler_cls in self.HANDLERS:
            kwargs = self._handler_settings.get_settings(name, handler_cls)
            setattr(self, 'handler_' + name, handler_cls(self._model, self._bags, **kwargs))
        self._handler_settings.raise_if_invalid_handler_settings(self)

    def __copy__(self):
        """ A copy that can take another query dict: handlers are copied too """
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        for name, key, handler_cls in self.HANDLERS:
            attr = 'handler_' + name
            setattr(clone, attr, copy(getattr(self, attr)))
        clone._query = None
        return clone

    @property
    def model(self) -> type:
        return self._model

    @property
    def bags(self) -> ModelPropertyBags:
        return self._bags

    @property
    def handler_settings(self) -> ServiceSettingsHandler:
        return self._handler_settings

    def from_query(self, query: Optional[Query]) -> 'ServiceQuery':
        """ Start with this Query instead of a plain `Query([model])`

            Use it to pre-filter: e.g. to restrict the query to the documents of a referenced collection.
        """
        self._query = query
        return self

    def with_session(self, ssn) -> 'ServiceQuery':
        """ Bind the query to a Session """
        self._query = self._base_query().with_session(ssn)
        return self

    def query(self, query_dict: Optional[Mapping]) -> 'ServiceQuery':
        """ Give the query dict to the handlers

        Every handler receives its input, even an empty one: some have defaults (e.g. `default_limit`).

        :param query_dict: Filtering conditions and `$`-directives
        :raises InvalidQueryError: a malformed directive or filter
        :raises InvalidColumnError: an unknown field
        :raises InvalidRelationError: an unknown relationship
        :raises DisabledError: the settings have turned a used directive off
        :rtype: ServiceQuery
        """
        if query_dict is not None and not isinstance(query_dict, Mapping):
            raise InvalidQueryError('Query must be either an object, or null')

        conditions = dict(query_dict or {})
        specials = extract_specials(conditions)

        for name, key, handler in self._handlers():
            value = conditions if key is None else specials.get(key)
            # A disabled handler is only an error when it has something to do
            if value:
                self._handler_settings.raise_if_not_handler_enabled(self._bags.model_name, name)
            handler.input(value)
        return self

    def end(self) -> Query:
        """ Get the sqlalchemy Query """
        q = self._base_query()
        for name, key, handler in self._handlers():
            q = handler.alter_query(q)
        return q

    @property
    def populated(self) -> frozenset:
        """ Names of the relationships that $populate loads """
        return self.handler_populate.relation_names

    def get_final_query_object(self) -> dict:
        """ The directives, normalized: the way the handlers have understood them """
        return {key: handler.get_final_input_value()
                for name, key, handler in self._handlers()
                if key is not None and not handler.is_input_empty()}

    def settings_for_related_model(self, relation_name: str) -> dict:
        """ Settings for queries into the referenced collection `relation_name` """
        target_model = self._bags.relations.get_target_model(relation_name)
        return self._handler_settings.settings_for_related_model(relation_name, target_model) or {}

    def __repr__(self):
        return 'ServiceQuery({})'.format(self._bags.model_name)

    def _handlers(self):
        """ (name, query dict key, handler) for every handler, in order """
        return [(name, key, getattr(self, 'handler_' + name))
                for name, key, handler_cls in self.HANDLERS]

    def _base_query(self) -> Query:
        """ The Query the handlers start with """
        return self._query if self._query is not None else Query([self._model])
