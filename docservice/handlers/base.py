from ..exc import InvalidColumnError


class QueryHandlerBase:
    """ Base for the handlers of a ServiceQuery

        A handler owns one key of the query dict (a `$`-directive, or the filter),
        and goes through three stages:

        1. __init__(): gets the model and its settings. Arguments with defaults are settings!
        2. input(): gets the value from the query dict, validates it, and keeps it
        3. alter_query(): applies the value to an sqlalchemy Query
    """

    #: The key of the query dict this handler owns (e.g. '$sort')
    query_object_section_name = None

    def __init__(self, model, bags):
        """ Prepare the handler for a model

        No input yet: a handler is initialized once, then copied for every query (see Reusable)

        :param model: The sqlalchemy model
        :param bags: Model bags
        :type bags: docservice.bag.ModelPropertyBags
        """
        self.model = model
        self.bags = bags
        #: The bag of properties the input is validated against
        self.supported_bags = self._get_supported_bags()

        # input() is single-use
        self.input_received = False
        self.input_value = None

    def __copy__(self):
        """ A shallow copy: the state a handler has before input() """
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        return clone

    def _get_supported_bags(self):
        """ The bag this handler validates its input against

        :rtype: docservice.bag._PropertiesBagBase
        """
        raise NotImplementedError()

    def validate_properties(self, prop_names, bag=None, where=None):
        """ Make sure that every name is in the bag

        :param prop_names: Names that came from the input
        :param bag: The bag to check against. Default: `self.supported_bags`
        :param where: Where the names came from, for the error message
        :raises InvalidColumnError: the first unknown name, alphabetically
        """
        unknown = (bag or self.supported_bags).get_invalid_names(prop_names)
        if unknown:
            raise InvalidColumnError(self.bags.model_name,
                                     min(unknown),
                                     where or self.query_object_section_name)

    def input(self, qo_value):
        """ Receive the value of the query dict key

        Subclasses validate and parse it.

        :rtype: QueryHandlerBase
        :raises InvalidQueryError
        :raises InvalidColumnError
        :raises InvalidRelationError
        """
        self.input_value = qo_value  # kept as is: not to be modified
        self.input_received = True

        # The second call fails
        self.input = self._input_already_received
        return self

    def _input_already_received(self, *args, **kwargs):
        raise RuntimeError('{}.input() was already called; copy() the handler, or wrap it into Reusable()'
                           .format(self.__class__.__name__))

    def is_input_empty(self):
        return not self.input_value

    def alter_query(self, query):
        """ Apply the input to a query

        :type query: sqlalchemy.orm.Query
        :return: A new query
        :rtype: sqlalchemy.orm.Query
        """
        raise NotImplementedError()

    def get_final_input_value(self):
        """ The input, normalized: what the handler has understood """
        return self.input_value
