"""
The Service does not touch sqlalchemy instances directly: it has a CrudHelper for that.

CrudHelper turns incoming documents into instances (create), merges them into existing instances (update),
gives ids to the items of embedded collections, and makes ServiceQuery objects for reading.
"""

from typing import Union, Mapping, Iterable, Set, FrozenSet, Optional

from sqlalchemy.orm import Query
from sqlalchemy.orm.attributes import flag_modified

from .. import exc
from ..bag import ModelPropertyBags
from ..query import ServiceQuery
from ..types import EMBEDDED_ID_KEY, new_embedded_id
from ..util import Reusable


class CrudHelper:
    """ Writes documents into instances of a model, and reads them with ServiceQuery

        A Service keeps one CrudHelper for its whole life.

        Documents may write to columns and to @property attributes that have a setter.
        Relationships are never written from a document: referenced collections have their own operations.
        Use `writable_properties=False` to restrict documents to columns only.
    """

    _MODEL_PROPERTY_BAGS_CLS = ModelPropertyBags
    _QUERY_CLS = ServiceQuery

    def __init__(self, model: type,
                 writable_properties: bool = True,
                 protected_fields: Optional[Iterable[str]] = None,
                 **handler_settings):
        """ Prepare the helper for a model

        :param model: The sqlalchemy model
        :param writable_properties: Let documents write to @property attributes with setters
        :param protected_fields: Fields that an update never changes: they're dropped from the document silently
        :param handler_settings: Settings for ServiceQuery
        """
        self.model = model
        self.bags = self._MODEL_PROPERTY_BAGS_CLS.for_model(model)
        self.handler_settings = handler_settings
        self.reusable_query = Reusable(self._QUERY_CLS(model, handler_settings))  # type: ServiceQuery

        self.writable_properties = writable_properties
        self.protected_fields = self._known_names(protected_fields or (), self.bags.all_names, 'protected_fields')

        #: {relationship name: CrudHelper}, created on demand
        self._related_crudhelpers = {}

    def query_model(self, query_dict: Union[Mapping, None] = None, from_query: Union[Query, None] = None) -> ServiceQuery:
        """ Get a ServiceQuery for the query dict

            :param query_dict: The query dict from the user
            :param from_query: The Query to start with
            :raises exc.InvalidQueryError
            :raises exc.InvalidColumnError
            :raises exc.InvalidRelationError
            :raises exc.DisabledError
        """
        return self.reusable_query.from_query(from_query).query(query_dict)

    def related_crudhelper(self, relation_name: str) -> 'CrudHelper':
        """ Get the CrudHelper for the model of a referenced collection (uses the `related` settings) """
        try:
            return self._related_crudhelpers[relation_name]
        except KeyError:
            target_model = self.bags.relations.get_target_model(relation_name)
            settings = self.reusable_query.settings_for_related_model(relation_name)
            helper = self._related_crudhelpers[relation_name] = self.__class__(target_model, **settings)
            return helper

    def _known_names(self, names: Iterable[str], known: FrozenSet[str], where: str) -> FrozenSet[str]:
        """ Make sure every name is known

            :raises exc.InvalidColumnError: the first unknown name, alphabetically
        """
        names = frozenset(names)
        unknown = names - known
        if unknown:
            raise exc.InvalidColumnError(self.bags.model_name, min(unknown), where)
        return names

    def _ignored_fields(self, action: str) -> Set[str]:
        """ Fields silently dropped from an incoming document

            Create: `_id` only; a document may bring its own `id`.
            Update: identifiers and protected fields can't change.
        """
        if action == 'create':
            return {'_id'}
        elif action == 'update':
            return {'id', '_id'} | self.bags.pk.names | self.protected_fields
        raise ValueError(action)

    def validate_incoming_entity_dict_fields(self, entity_dict: Mapping, action: str) -> dict:
        """ Check an incoming document and prepare it for writing

            :param action: 'create' or 'update'
            :return: A new dict: ignored fields dropped, embedded items given their ids
            :raises exc.InvalidQueryError: not an object
            :raises exc.InvalidColumnError: a field that can't be written
        """
        if not isinstance(entity_dict, Mapping):
            raise exc.InvalidQueryError('{}: a document must be an object, got {}'
                                        .format(action, type(entity_dict).__name__))

        ignored = self._ignored_fields(action)
        document = {k: v for k, v in entity_dict.items() if k not in ignored}

        writable = self.bags.writable.names if self.writable_properties else self.bags.columns.names
        self._known_names(document, writable, action)

        for name in document.keys() & self.bags.columns.embedded_array_names:
            document[name] = self.prepare_embedded_items(name, document[name])
        return document

    def prepare_embedded_item(self, collection: str, item: Mapping) -> dict:
        """ Copy an item of an embedded collection; a new id is generated when it has none

            :raises exc.InvalidQueryError: not an object
        """
        if not isinstance(item, Mapping):
            raise exc.InvalidQueryError('{}: an item must be an object, got {}'
                                        .format(collection, type(item).__name__))
        prepared = dict(item)
        if prepared.get(EMBEDDED_ID_KEY) is None:
            prepared[EMBEDDED_ID_KEY] = new_embedded_id()
        return prepared

    def prepare_embedded_items(self, collection: str, items: Optional[Iterable[Mapping]]) -> list:
        """ prepare_embedded_item() for every item; None becomes an empty collection """
        if items is None:
            return []
        if not isinstance(items, (list, tuple)):
            raise exc.InvalidQueryError('{}: must be a list, got {}'
                                        .format(collection, type(items).__name__))
        return [self.prepare_embedded_item(collection, item) for item in items]

    def create_model(self, entity_dict: Mapping) -> object:
        """ Make a new instance from a document

            :raises exc.InvalidQueryError
            :raises exc.InvalidColumnError
        """
        document = self.validate_incoming_entity_dict_fields(entity_dict, 'create')
        return self.model(**document)

    def update_model(self, entity_dict: Mapping, instance: object) -> object:
        """ Merge a document into an instance: a partial update

            Fields missing from the document stay as they are.
            A dict written into a JSON column that already holds a dict is merged into it, one level deep.

            :return: The same instance
            :raises exc.InvalidQueryError
            :raises exc.InvalidColumnError
        """
        document = self.validate_incoming_entity_dict_fields(entity_dict, 'update')

        for name, value in document.items():
            if isinstance(value, Mapping) and self.bags.columns.is_column_json(name) \
                    and isinstance(getattr(instance, name), dict):
                getattr(instance, name).update(value)
                # In-place changes are invisible to sqlalchemy
                flag_modified(instance, name)
            else:
                setattr(instance, name, value)
        return instance
