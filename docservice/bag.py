from enum import Enum
from itertools import chain

from sqlalchemy import inspect, Column, JSON, TypeDecorator
from sqlalchemy.orm import ColumnProperty, RelationshipProperty
from sqlalchemy.orm.interfaces import MapperProperty
from sqlalchemy.sql.type_api import TypeEngine

from typing import Set, Mapping, Iterable, Tuple, FrozenSet, NamedTuple, Optional, Any

from .types import EmbeddedDocumentArray


class FieldKind(Enum):
    """ The shape of a model field, as far as collections are concerned """
    #: A column, a JSON value, or a scalar relationship (many-to-one)
    SCALAR = 'scalar'
    #: A list of embedded documents, stored within the document itself
    EMBEDDED_ARRAY = 'embedded'
    #: A list of documents that live in another model and are referenced by their ids
    REFERENCED_ARRAY = 'referenced'


class FieldDescriptor(NamedTuple):
    """ Describes a single field of a model """
    name: str
    kind: FieldKind
    #: Name of the target model (only for REFERENCED_ARRAY)
    target_model_name: Optional[str] = None


class ModelPropertyBags:
    """ Everything the service needs to know about the attributes of a model

    The attributes are sorted into bags:

    - columns
    - properties: plain python @property; `writable_properties` are the ones with a setter
    - relations
    - pk: the primary key columns
    - writable: what an incoming document can write to (columns, writable properties)
    - fields: the kind of every column and relationship (scalar, embedded collection, referenced collection)

    Model inspection is not free: use `ModelPropertyBags.for_model()`, which does it once per model.
    """
    __cache = {}

    @classmethod
    def for_model(cls, model: type) -> 'ModelPropertyBags':
        """ Get bags for a model; cached """
        bags = cls.__cache.get(model)
        if bags is None:
            bags = cls.__cache[model] = cls(model)
        return bags

    def __init__(self, model: type):
        insp = inspect(model)

        self.model = model
        self.model_name = model.__name__

        # Attributes, by type
        self.columns = ColumnsBag(_get_model_columns(model, insp))
        self.properties = PropertiesBag(_get_model_properties(model, insp))
        self.relations = RelationshipsBag(_get_model_relationships(model, insp))

        # Derived bags
        self.pk = PrimaryKeyBag({name: self.columns[name]
                                 for name in (insp.mapper.get_property_by_column(c).key
                                              for c in insp.mapper.primary_key)})
        self.writable_properties = PropertiesBag({name: None
                                                  for name in self.properties.names
                                                  if _is_property_writable(getattr(model, name))})
        self.writable = CombinedBag(
            col=self.columns,
            prop=self.writable_properties,
        )

        # Field kinds: resolved right now, never re-derived
        self.fields = FieldsBag(self._describe_fields())

    def _describe_fields(self) -> Mapping[str, FieldDescriptor]:
        """ Get a FieldDescriptor for every column and relationship """
        fields = {}
        for name in self.columns.names:
            if self.columns.is_column_embedded_array(name):
                fields[name] = FieldDescriptor(name, FieldKind.EMBEDDED_ARRAY)
            else:
                fields[name] = FieldDescriptor(name, FieldKind.SCALAR)
        for name in self.relations.names:
            if self.relations.is_relationship_array(name):
                target = self.relations.get_target_model(name)
                fields[name] = FieldDescriptor(name, FieldKind.REFERENCED_ARRAY, target.__name__)
            else:
                fields[name] = FieldDescriptor(name, FieldKind.SCALAR)
        return fields

    @property
    def all_names(self) -> Set[str]:
        """ Names of all attributes: columns, properties, relationships """
        return self.columns.names | self.properties.names | self.relations.names


class _PropertiesBagBase:
    """ A bag: a named set of model attributes

    Supports `name in bag`, `bag[name]`, and iteration over (name, attribute) pairs.
    """

    def __contains__(self, name: str) -> bool:
        raise NotImplementedError

    def __getitem__(self, name: str) -> Any:
        raise NotImplementedError

    @property
    def names(self) -> FrozenSet[str]:
        raise NotImplementedError

    def __iter__(self):
        raise NotImplementedError

    def get_invalid_names(self, names: Iterable[str]) -> Set[str]:
        """ Get the names that are not in this bag: for validating user input """
        return set(names) - self.names


class _MappingBag(_PropertiesBagBase):
    """ A bag backed by a {name: value} mapping """

    def __init__(self, items: Mapping[str, Any]):
        self._items = dict(items)
        self._names = frozenset(self._items)

    @property
    def names(self) -> FrozenSet[str]:
        return self._names

    def __contains__(self, name: str) -> bool:
        return name in self._items

    def __getitem__(self, name: str) -> Any:
        return self._items[name]

    def __iter__(self) -> Iterable[Tuple[str, Any]]:
        return iter(self._items.items())

    def _names_where(self, predicate) -> FrozenSet[str]:
        return frozenset(name for name, value in self._items.items() if predicate(value))


class PropertiesBag(_MappingBag):
    """ Plain python properties: @property

    There's nothing to keep about them but their names: every value is None.
    """

    def __init__(self, properties: Mapping[str, None]):
        super(PropertiesBag, self).__init__(dict.fromkeys(properties))


class ColumnsBag(_MappingBag):
    """ Columns: {attribute name: InstrumentedAttribute}

    Note that the attribute name may differ from the name of the column in the table.
    """

    def __init__(self, columns: Mapping[str, ColumnProperty]):
        super(ColumnsBag, self).__init__(columns)
        self._json_names = self._names_where(_is_column_json)
        self._embedded_array_names = self._names_where(_is_column_embedded_array)

    def is_column_json(self, name: str) -> bool:
        """ Is it a JSON column? (embedded collections are JSON columns too) """
        return name in self._json_names

    def is_column_embedded_array(self, name: str) -> bool:
        return name in self._embedded_array_names

    @property
    def embedded_array_names(self) -> FrozenSet[str]:
        """ Names of the columns that keep embedded collections """
        return self._embedded_array_names


class PrimaryKeyBag(ColumnsBag):
    """ The primary key columns """


class RelationshipsBag(_MappingBag):
    """ Relationships: {name: InstrumentedAttribute} """

    def __init__(self, relationships: Mapping[str, RelationshipProperty]):
        super(RelationshipsBag, self).__init__(relationships)
        self._array_names = self._names_where(_is_relationship_array)

    def is_relationship_array(self, name: str) -> bool:
        """ Does the relationship hold a list? (one-to-many, many-to-many) """
        return name in self._array_names

    def get_target_model(self, name: str) -> type:
        """ Get the model a relationship points to """
        return self[name].property.mapper.class_


class FieldsBag(_MappingBag):
    """ Field kinds: {name: FieldDescriptor} for every column and relationship """

    def get(self, name: str) -> Optional[FieldDescriptor]:
        return self._items.get(name)

    def kind_of(self, name: str) -> Optional[FieldKind]:
        """ Get the kind of a field, or None if there's no such field """
        field = self._items.get(name)
        return field.kind if field is not None else None

    def names_of_kind(self, kind: FieldKind) -> FrozenSet[str]:
        return self._names_where(lambda field: field.kind is kind)


class CombinedBag(_PropertiesBagBase):
    """ Several bags looked up as one

    Every bag gets an alias:

        cbag = CombinedBag(
            col=bags.columns,
            rel=bags.relations,
        )

    and a lookup tells which bag the attribute has come from:

        bag_name, bag, attr = cbag['tags']
        bag_name  #-> 'rel'
        bag  #-> bags.relations
        attr  #-> User.tags
    """

    def __init__(self, **bags):
        self._bags = bags
        self._names = frozenset(chain.from_iterable(bag.names for bag in bags.values()))

        # {attribute name: bag alias}
        self._alias_by_name = {name: alias
                               for alias, bag in self._bags.items()
                               for name in bag.names}

    @property
    def names(self) -> FrozenSet[str]:
        return self._names

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def __getitem__(self, name: str) -> Tuple[str, _PropertiesBagBase, MapperProperty]:
        alias = self._alias_by_name[name]
        bag = self._bags[alias]
        return alias, bag, bag[name]

    def get(self, name: str) -> MapperProperty:
        """ Get just the attribute """
        return self[name][2]

    def __iter__(self) -> Iterable[Tuple[str, _PropertiesBagBase, str, MapperProperty]]:
        for alias, bag in self._bags.items():
            for name, attr in bag:
                yield alias, bag, name, attr


def _get_model_columns(model, insp) -> dict:
    """ {name: attribute} of the columns of a model, in the order of declaration """
    return {name: getattr(model, name)
            for name, prop in insp.column_attrs.items()
            # Real columns only: no column_property() expressions
            if isinstance(prop.expression, Column)}


def _get_model_properties(model, insp) -> dict:
    """ {name: None} of the @property attributes of a model """
    return {name: None
            for name in dir(model)
            if not name.startswith('_')
            and isinstance(getattr(model, name), property)}


def _get_model_relationships(model, insp) -> dict:
    """ {name: attribute} of the relationships of a model """
    return {name: getattr(model, name)
            for name in insp.relationships.keys()}


def _get_column_type(col: MapperProperty) -> TypeEngine:
    """ The SQL type of a column; for decorated types, the type they wrap """
    return col.type.impl if isinstance(col.type, TypeDecorator) else col.type


def _is_column_json(col: MapperProperty) -> bool:
    return isinstance(_get_column_type(col), JSON)


def _is_column_embedded_array(col: MapperProperty) -> bool:
    return isinstance(col.type, EmbeddedDocumentArray)


def _is_relationship_array(rel: RelationshipProperty) -> bool:
    return rel.property.uselist


def _is_property_writable(prop: property) -> bool:
    return prop.fset is not None
