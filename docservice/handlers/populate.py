"""
### $populate

Loads related documents together with the documents themselves: an eager `selectinload()`.

Every populate path is a string: a relationship name, optionally followed by the fields of the related model
to load, separated by whitespace:

```javascript
{ $populate: 'tags' }  // load tags, all fields
{ $populate: 'articles title' }  // load articles, only the `title` field (+ the primary key)
{ $populate: ['tags', 'articles -body'] }  // multiple paths
```

The list of fields follows the `$select` syntax.
"""

from typing import NamedTuple

from sqlalchemy.orm import selectinload

from .base import QueryHandlerBase
from .select import SelectHandler
from ..bag import ModelPropertyBags
from ..exc import InvalidQueryError, InvalidRelationError, DisabledError


class PopulatePath(NamedTuple):
    """ A parsed populate path: 'field sub1 sub2' -> ('field', 'sub1 sub2') """
    field: str
    select: str

    @classmethod
    def parse(cls, path: str) -> 'PopulatePath':
        """ Parse a populate path string """
        field, *select = path.split()
        return cls(field, ' '.join(select))


class PopulateHandler(QueryHandlerBase):
    """ $populate: eagerly load relationships

        Supports: Relationships
    """

    query_object_section_name = '$populate'

    def __init__(self, model, bags, allowed_relations=None, banned_relations=None):
        """ Init the handler

        :param model: Sqlalchemy model to work with
        :param bags: Model bags
        :param allowed_relations: An explicit list of relationships that can be populated.
            All the rest are banned.
        :param banned_relations: An explicit list of relationships that can't be populated.
            All the rest are allowed.
        """
        super(PopulateHandler, self).__init__(model, bags)

        # Settings
        assert allowed_relations is None or banned_relations is None, \
            'Use either `allowed_relations`, or `banned_relations`, but not both'
        self.allowed_relations = set(allowed_relations) if allowed_relations is not None else None
        self.banned_relations = set(banned_relations) if banned_relations is not None else None

        # Validate
        if self.allowed_relations:
            self.validate_properties(self.allowed_relations, where='$populate:allowed_relations')
        if self.banned_relations:
            self.validate_properties(self.banned_relations, where='$populate:banned_relations')

        # On input
        #: dict of relationship name => SelectHandler for the related model
        self.populate = {}

    def _get_supported_bags(self):
        return self.bags.relations

    def validate_properties(self, prop_names, bag=None, where=None):
        # Use the same method, but a different exception class
        invalid = (bag or self.supported_bags).get_invalid_names(prop_names)
        if invalid:
            raise InvalidRelationError(self.bags.model_name,
                                       sorted(invalid)[0],
                                       where or self.query_object_section_name)

    def input(self, paths):
        super(PopulateHandler, self).input(paths)

        # Empty
        if not paths:
            return self

        # A single path, or a list of them
        if isinstance(paths, str):
            paths = [paths]
        if not isinstance(paths, (list, tuple)) or not all(isinstance(p, str) and p.strip() for p in paths):
            raise InvalidQueryError('{} must be either a string, or a list of strings'
                                    .format(self.query_object_section_name))

        # Parse
        paths = [PopulatePath.parse(p) for p in paths]

        # Validate relationships
        self.validate_properties(p.field for p in paths)
        for p in paths:
            self._raise_if_relation_is_not_allowed(p.field)

        # Nested projections
        # A new dict: copies of this handler share the one created in __init__()
        populate = {}
        for p in paths:
            populate[p.field] = self._merge_select(populate.get(p.field), p)
        self.populate = populate

        return self

    def _raise_if_relation_is_not_allowed(self, relation_name):
        if self.allowed_relations is not None and relation_name not in self.allowed_relations:
            raise DisabledError('{}: relation "{}" is not allowed'
                                .format(self.query_object_section_name, relation_name))
        if self.banned_relations is not None and relation_name in self.banned_relations:
            raise DisabledError('{}: relation "{}" is not allowed'
                                .format(self.query_object_section_name, relation_name))

    def _merge_select(self, select_handler, path: PopulatePath) -> SelectHandler:
        """ Make a SelectHandler for the related model; merge it with the previous one, if any """
        target_model = self.bags.relations.get_target_model(path.field)
        target_bags = ModelPropertyBags.for_model(target_model)

        # When the same relationship is populated twice, merge their projections
        select = path.select
        if select_handler is not None:
            if not select_handler.names or not select:
                select = ''  # one of them loads everything
            else:
                select = ' '.join(select_handler.get_final_input_value() + [select])

        return SelectHandler(target_model, target_bags).input(select)

    @property
    def relation_names(self):
        """ The names of the relationships that are going to be populated """
        return frozenset(self.populate.keys())

    def compile_options(self):
        """ Get the list of selectinload() options, with load_only() on the related models """
        options = []
        for relation_name, select in self.populate.items():
            loader = selectinload(self.bags.relations[relation_name])
            nested_options = select.compile_options()
            if nested_options:
                loader = loader.options(*nested_options)
            options.append(loader)
        return options

    def alter_query(self, query):
        if not self.populate:
            return query  # short-circuit
        return query.options(*self.compile_options())

    def get_final_input_value(self):
        return [' '.join([name] + select.get_final_input_value())
                for name, select in self.populate.items()]
