from copy import deepcopy
from typing import Iterable, List

from sqlalchemy import inspect

from .bag import ModelPropertyBags


def instance_to_dict(instance: object, populate: Iterable[str] = ()) -> dict:
    """ Convert an sqlalchemy instance into a dict

        Only the loaded state is used: columns that were not loaded (e.g. excluded by $select) are omitted,
        and no lazy loading is ever triggered.

        :param instance: The instance to convert
        :param populate: The names of the relationships to include.
            Related instances are converted with their columns only.
    """
    bags = ModelPropertyBags.for_model(type(instance))
    loaded = inspect(instance).dict

    # Columns
    ret = {name: deepcopy(loaded[name]) if bags.columns.is_column_json(name) else loaded[name]
           for name, column in bags.columns
           if name in loaded}

    # Relationships
    for name in populate:
        if name not in loaded:
            continue
        value = loaded[name]
        if value is None:
            ret[name] = None
        elif bags.relations.is_relationship_array(name):
            ret[name] = [instance_to_dict(v) for v in value]
        else:
            ret[name] = instance_to_dict(value)

    return ret


def instances_to_dicts(instances: Iterable[object], populate: Iterable[str] = ()) -> List[dict]:
    """ Convert a list of sqlalchemy instances into a list of dicts """
    populate = tuple(populate)
    return [instance_to_dict(instance, populate) for instance in instances]
