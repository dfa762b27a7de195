from typing import Iterable, Union, Callable

from .inspect import pluck_kwargs_from


class ServiceSettingsDict(dict):
    """ All settings of a Service, as keyword arguments

        It is a plain dict: the keyword arguments are here for autocompletion and for the docs.
        Handlers take the settings that match their __init__() arguments (see ServiceSettingsHandler),
        CrudHelper takes its own, and `<handler>_enabled` flags turn handlers off.
    """

    def __init__(self,
                 # --- $populate
                 allowed_relations: Iterable[str] = None,
                 banned_relations: Iterable[str] = None,
                 # --- $limit
                 max_items: int = None,
                 default_limit: int = None,
                 # --- enabled handlers?
                 filter_enabled: bool = True,
                 select_enabled: bool = True,
                 populate_enabled: bool = True,
                 sort_enabled: bool = True,
                 skip_enabled: bool = True,
                 limit_enabled: bool = True,
                 # --- CrudHelper
                 writable_properties: bool = True,
                 protected_fields: Iterable[str] = None,
                 # --- Relations
                 related: Union[dict, Callable, None] = None,
                 ):
        """ A `Service` has a few settings that lets you configure the way queries are made,
        and the way documents are written.

        Example:
            ```python
            from docservice import Service, ServiceSettingsDict

            users = Service(models.User, Session, **ServiceSettingsDict(
                # can only populate the following relations
                allowed_relations=('articles', 'tags'),
                # never load more than 100 documents
                max_items=100,
                # configure queries made to referenced collections
                related=dict(
                    articles=dict(max_items=10),
                ),
            ))
            ```

        Args:
            allowed_relations (list[str] | None): (for: $populate)
                An explicit list of relationships that can be populated by the user.
                All other relationships will raise a DisabledError.
            banned_relations (list[str] | None): (for: $populate)
                A list of relationships that cannot be populated by the user: DisabledError will be raised.
            max_items (int | None): (for: $limit)
                A hard cap on the number of documents: a larger $limit is reduced to it.
            default_limit (int | None): (for: $limit)
                The limit to use when the user has not provided any.
            filter_enabled (bool): Enable/disable filtering
            select_enabled (bool): Enable/disable the `$select` directive
            populate_enabled (bool): Enable/disable the `$populate` directive
            sort_enabled (bool): Enable/disable the `$sort` directive
            skip_enabled (bool): Enable/disable the `$skip` directive
            limit_enabled (bool): Enable/disable the `$limit` directive

            writable_properties (bool): (for: create, update)
                Are `@property` model attributes writable?
                When `False`, an incoming document may only set real columns.
            protected_fields (list[str] | None): (for: update)
                The list of fields that are stripped from every update payload.
                `id`, `_id`, and primary key fields are always stripped.

            related (dict | Callable | None):
                Settings for queries made to the documents of referenced collections, by relationship name.

                ```python
                related = dict(
                    tags=dict(max_items=10),
                    articles=lambda: dict(default_limit=5),  # called when needed
                    # Any other relationship
                    **{"*": lambda relation_name, target_model: dict(max_items=100)},
                )
                ```
        """
        # Every argument becomes a key: none can be forgotten
        settings = dict(locals())
        settings.pop('self')
        settings.pop('__class__', None)
        super(ServiceSettingsDict, self).__init__(settings)

    def and_more(self, **settings):
        """ A copy, with some settings changed """
        return self.__class__(**dict(self, **settings))

    @classmethod
    def pluck_from(cls, dict, skip=()):
        """ Make settings from a dict that may hold other keys too: those are ignored """
        return cls(**pluck_kwargs_from(dict, for_func=cls.__init__, skip=skip))
