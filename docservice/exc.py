class ServiceError(Exception):
    """ Base class for errors synthesized by the service layer

        Errors of the underlying store (sqlalchemy.exc.*) are never wrapped: they propagate as they are.

        Attributes:
            code (int): HTTP-like status code, for the convenience of the framework that exposes the service
            name (str): Error name
            message (str): Error message
            data (dict | None): Additional data
    """
    code = 500
    name = 'GeneralError'

    def __init__(self, message: str, data: dict = None):
        super(ServiceError, self).__init__(message)
        self.message = message
        self.data = data

    def to_dict(self) -> dict:
        """ Get a JSON-friendly representation of the error """
        return dict(
            name=self.name,
            message=self.message,
            code=self.code,
            data=self.data,
        )


class BadRequest(ServiceError):
    """ The input provided by the client is invalid """
    code = 400
    name = 'BadRequest'


class NotFound(ServiceError):
    """ A document, a field, a collection, or a collection item does not exist """
    code = 404
    name = 'NotFound'


class Forbidden(ServiceError):
    """ The operation violates a policy: e.g. adding an item that's already in a collection """
    code = 403
    name = 'Forbidden'


class InvalidQueryError(BadRequest):
    """ Invalid query object provided by the client """

    def __init__(self, err: str):
        super(InvalidQueryError, self).__init__('Query object error: {err}'.format(err=err))


class DisabledError(InvalidQueryError):
    """ The feature is disabled """


class InvalidColumnError(BadRequest):
    """ Query mentioned an invalid column name """

    def __init__(self, model: str, column_name: str, where: str):
        self.model = model
        self.column_name = column_name
        self.where = where

        super(InvalidColumnError, self).__init__(
            'Invalid column "{column_name}" for "{model}" specified in {where}'.format(
                column_name=column_name,
                model=model,
                where=where),
            dict(model=model, column=column_name, where=where)
        )


class InvalidRelationError(InvalidColumnError):
    """ Query mentioned an invalid relationship name """

    def __init__(self, model: str, column_name: str, where: str):
        self.model = model
        self.column_name = column_name
        self.where = where

        BadRequest.__init__(
            self,
            'Invalid relation "{column_name}" for "{model}" specified in {where}'.format(
                column_name=column_name,
                model=model,
                where=where),
            dict(model=model, relation=column_name, where=where)
        )
