"""
Collections are fields that keep a list of documents:

* Embedded collections: a column of `EmbeddedDocumentArray` type; the documents are stored within the document itself
* Referenced collections: an array relationship (one-to-many, many-to-many); the documents live in another model

These functions tell them apart using the model's bags, and find the models that referenced collections point to.
"""

from .bag import ModelPropertyBags, FieldKind
from .exc import NotFound


def is_existing_collection(field: str, model: type) -> bool:
    """ Is the field an embedded collection, or a referenced collection?

        Scalar fields and fields that don't exist at all are not collections.
    """
    return ModelPropertyBags.for_model(model).fields.kind_of(field) in (FieldKind.EMBEDDED_ARRAY,
                                                                         FieldKind.REFERENCED_ARRAY)


def is_embedded_collection(field: str, model: type) -> bool:
    """ Is the field a collection of embedded documents? """
    return ModelPropertyBags.for_model(model).fields.kind_of(field) is FieldKind.EMBEDDED_ARRAY


def is_referenced_collection(field: str, model: type) -> bool:
    """ Is the field a collection of documents referenced by their ids? """
    return ModelPropertyBags.for_model(model).fields.kind_of(field) is FieldKind.REFERENCED_ARRAY


def resolve_associated_model(model: type, field: str) -> type:
    """ Get the model that a referenced collection points to

        The model is looked up by name in the model registry.

        :raises NotFound: the field is not a referenced collection, or the registry has no such model
    """
    descriptor = ModelPropertyBags.for_model(model).fields.get(field)
    if descriptor is None or descriptor.kind is not FieldKind.REFERENCED_ARRAY:
        raise NotFound('Invalid collection "{}" for "{}"'.format(field, model.__name__),
                       dict(model=model.__name__, collection=field))

    for mapper in model.registry.mappers:
        if mapper.class_.__name__ == descriptor.target_model_name:
            return mapper.class_

    raise NotFound('Model "{}" is not registered'.format(descriptor.target_model_name),
                   dict(model=descriptor.target_model_name))
