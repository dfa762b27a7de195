from copy import copy


class Reusable:
    """ Make a reusable handler or query

        A ServiceQuery analyzes its settings and initializes all of its handlers once;
        then, every query copies it, and the copy receives the input.
        This class wrapper makes a copy every time any attribute of its wrapped object is accessed.

        Example:

            sort = Reusable(SortHandler(User, bags))
            sort.input('-age')  # works on a copy

        It also works for ServiceQuery:

            query = Reusable(ServiceQuery(User, dict(max_items=100)))
    """
    __slots__ = ('__obj',)

    def __init__(self, obj):
        self.__obj = obj

    # copy-on-access
    def __getattr__(self, attr):
        return getattr(copy(self.__obj), attr)

    def __repr__(self):
        return 'Reusable({!r})'.format(self.__obj)
