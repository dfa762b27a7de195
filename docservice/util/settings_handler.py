from typing import Union, Optional, Callable

from .inspect import pluck_kwargs_from
from ..exc import DisabledError


class ServiceSettingsHandler:
    """ Routes the flat settings dict of a service to the handlers of its queries

        Every handler declares its settings as keyword arguments of its __init__(),
        and no two handlers share a name. So, a service is configured with one flat dict,
        and each handler picks the keys that match its own arguments.

        A setting that no handler picks up is a typo: see raise_if_invalid_handler_settings()
    """

    #: Keys that are known, but are not handler kwargs
    OTHER_KNOWN_KEYS = frozenset(('related',))

    def __init__(self, settings: dict):
        """ Keep the settings

            :param settings: {handler kwarg: value}, plus `<handler>_enabled` flags, plus `related`
        """
        assert isinstance(settings, dict)

        # Read-only: no need to copy it
        self._settings = settings

        #: Names of the handlers that asked for their settings
        self._handler_names = set()
        #: Names of the kwargs that were taken by the handlers
        self._used_kwargs_names = set()
        #: Handlers turned off with `<handler>_enabled=False`
        self._disabled_handlers = set()

        #: {relationship name: settings}, for queries into referenced collections
        self._related_settings = call_if_callable(self._settings.get('related', None)) or {}

    def validate_related_settings(self, bags):
        """ Make sure that `related` only mentions relationships of the model (or '*')

            :type bags: docservice.bag.ModelPropertyBags
            :raises KeyError: unknown relationship names
        """
        unknown = set(self._related_settings) - bags.relations.names - {'*'}
        if unknown:
            raise KeyError('"related" mentions unknown relationships: {!r}'
                           .format(sorted(unknown)))

    def get_settings(self, handler_name: str, handler_cls: type) -> dict:
        """ Get the kwargs for a handler's __init__()

            The arguments of `handler_cls.__init__` that have defaults are looked up in the settings;
            the missing ones keep their defaults.
            Also, `<handler_name>_enabled=False` marks the handler as disabled.
        """
        if not self._settings.get('{}_enabled'.format(handler_name), True):
            self._disabled_handlers.add(handler_name)

        kwargs = pluck_kwargs_from(self._settings, for_func=handler_cls.__init__)

        # Remember what was used: for raise_if_invalid_handler_settings()
        self._handler_names.add(handler_name)
        self._used_kwargs_names.update(kwargs)
        return kwargs

    def is_handler_enabled(self, handler_name: str) -> bool:
        return handler_name not in self._disabled_handlers

    def raise_if_not_handler_enabled(self, model_name: str, handler_name: str):
        """ Fail when a disabled handler receives input

            :raises DisabledError
        """
        if not self.is_handler_enabled(handler_name):
            raise DisabledError('{} is disabled for "{}"'.format(handler_name, model_name))

    def raise_if_invalid_handler_settings(self, query):
        """ Fail on settings that nobody has used

            Call it after every handler has received its settings.

            :type query: docservice.query.ServiceQuery
            :raises KeyError: unknown settings
        """
        known = {'{}_enabled'.format(name) for name in self._handler_names} \
                | self._used_kwargs_names \
                | self.OTHER_KNOWN_KEYS
        unknown = set(self._settings) - known
        if unknown:
            raise KeyError('Unknown settings for {!r}: {}'
                           .format(query, ', '.join(sorted(unknown))))

    def settings_for_related_model(self, relation_name: str, target_model: type) -> Optional[dict]:
        """ Get the settings for queries into a referenced collection

            Looks at `related[relation_name]` first, then at `related['*']`.
            Either may be a dict or a callable; the '*' callable is called with (relation_name, target_model).
        """
        sets = call_if_callable(self._related_settings.get(relation_name, None))
        if sets is not None:
            return sets

        sets = self._related_settings.get('*', None)
        if callable(sets):
            sets = sets(relation_name, target_model)
        return sets

    def __repr__(self):
        return '{}({!r})'.format(self.__class__.__name__, self._settings)


def call_if_callable(v: Union[dict, Callable, None]):
    """ Get a value, or call it first when it's a callable (for late binding) """
    return v() if callable(v) else v
