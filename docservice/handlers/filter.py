"""
### Filter

Every key of the query dict that is not a `$`-directive is a condition: the `WHERE` part of an SQL query.
Conditions are AND-ed together:

```javascript
{
    name: 'Kevin',  // name = 'Kevin'
    age: { $gte: 18, $lte: 25 },  // 18 <= age <= 25
}
```

#### Comparison

| Condition                    | SQL                      |
|------------------------------|--------------------------|
| `{ a: 1 }`, `{ a: { $eq: 1 } }` | `a = 1`               |
| `{ a: { $ne: 1 } }`          | `a IS DISTINCT FROM 1`: unlike `!=`, also true for NULLs |
| `{ a: { $lt: 1 } }`          | `a < 1`                  |
| `{ a: { $lte: 1 } }`         | `a <= 1`                 |
| `{ a: { $gt: 1 } }`          | `a > 1`                  |
| `{ a: { $gte: 1 } }`         | `a >= 1`                 |
| `{ a: { $in: [1, 2] } }`     | `a IN (1, 2)`            |
| `{ a: { $nin: [1, 2] } }`    | `a NOT IN (1, 2)`        |
| `{ a: { $exists: true } }`   | `a IS NOT NULL`          |
| `{ a: { $exists: false } }`  | `a IS NULL`              |

#### Referenced collections

A referenced collection is matched by the ids of the documents it refers to:

| Condition                       | Matches documents whose collection... |
|---------------------------------|---------------------------------------|
| `{ tags: 1 }`, `{ tags: { $eq: 1 } }` | contains the document with id=1 |
| `{ tags: { $ne: 1 } }`          | does not contain it                   |
| `{ tags: { $in: [1, 2] } }`     | contains any of them                  |
| `{ tags: { $nin: [1, 2] } }`    | contains none of them                 |
| `{ tags: { $exists: true } }`   | is not empty                          |

#### Boolean operators

* `{ $or: [ {...}, {...} ] }`: any of the nested filters matches
* `{ $and: [ {...}, {...} ] }`: all of them match
* `{ $nor: [ {...}, {...} ] }`: none of them matches
* `{ $not: {...} }`: the nested filter does not match
"""

from sqlalchemy import and_, or_, not_

from .base import QueryHandlerBase
from ..bag import CombinedBag, ModelPropertyBags
from ..exc import InvalidQueryError, InvalidColumnError


class FilterExpressionBase:
    """ A parsed piece of the filter """

    __slots__ = ('operator_str', 'value')

    def __init__(self, operator_str, value):
        self.operator_str = operator_str
        self.value = value

    def compile_expression(self):
        """ Get an SQL expression """
        raise NotImplementedError()

    @staticmethod
    def sql_anded_together(conditions):
        """ AND a list of SQL conditions together """
        if not conditions:
            return True  # filter(True) matches everything
        if len(conditions) == 1:
            return conditions[0]
        return and_(*conditions).self_group()


class FilterBooleanExpression(FilterExpressionBase):
    """ $and, $or, $nor: `value` is a list of nested filters (each is a list of expressions)
        $not: `value` is a single nested filter
    """

    def __repr__(self):
        return '{}{!r}'.format(self.operator_str, self.value)

    def compile_expression(self):
        if self.operator_str == '$not':
            return not_(self.sql_anded_together([e.compile_expression() for e in self.value]))

        clauses = [self.sql_anded_together([e.compile_expression() for e in nested])
                   for nested in self.value]
        if self.operator_str == '$and':
            return self.sql_anded_together(clauses)

        # $or, $nor
        cc = or_(*clauses).self_group() if len(clauses) > 1 else clauses[0]
        return not_(cc) if self.operator_str == '$nor' else cc


class FilterColumnExpression(FilterExpressionBase):
    """ A column compared to a value: `column_name operator_str value` """

    __slots__ = ('column_name', 'column', 'operator_lambda')

    def __init__(self, column_name, column, operator_str, operator_lambda, value):
        super(FilterColumnExpression, self).__init__(operator_str, value)
        self.column_name = column_name
        self.column = column
        self.operator_lambda = operator_lambda

    def __repr__(self):
        return '{} {} {!r}'.format(self.column_name, self.operator_str, self.value)

    def compile_expression(self):
        return self.operator_lambda(self.column, self.value)


class FilterReferencedCollectionExpression(FilterColumnExpression):
    """ A referenced collection matched by the ids of the documents: `target_pk` is their primary key """

    __slots__ = ('target_pk',)

    def __init__(self, column_name, column, target_pk, operator_str, operator_lambda, value):
        super(FilterReferencedCollectionExpression, self).__init__(column_name, column, operator_str, operator_lambda, value)
        self.target_pk = target_pk

    def compile_expression(self):
        return self.operator_lambda(self.column, self.target_pk, self.value)


class FilterHandler(QueryHandlerBase):
    """ The filter: every key of the query dict that is not a `$`-directive

        Supports: Columns, Referenced collections
    """

    query_object_section_name = 'filter'

    def __init__(self, model, bags):
        super(FilterHandler, self).__init__(model, bags)

        # On input
        #: list[FilterExpressionBase], AND-ed together
        self.expressions = None

    def _get_supported_bags(self):
        return CombinedBag(
            col=self.bags.columns,
            rel=self.bags.relations,
        )

    # {operator: lambda column, value: condition}
    _operators_scalar = {
        '$eq':  lambda col, val: col == val,
        '$ne':  lambda col, val: col.is_distinct_from(val),
        '$lt':  lambda col, val: col < val,
        '$lte': lambda col, val: col <= val,
        '$gt':  lambda col, val: col > val,
        '$gte': lambda col, val: col >= val,
        '$in':  lambda col, val: col.in_(val),
        '$nin': lambda col, val: col.not_in(val),
        '$exists': lambda col, val: col.isnot(None) if val else col.is_(None),
    }

    # {operator: lambda relationship, target primary key, value: condition}
    _operators_referenced = {
        '$eq':  lambda rel, pk, val: rel.any(pk == val),
        '$ne':  lambda rel, pk, val: ~rel.any(pk == val),
        '$in':  lambda rel, pk, val: rel.any(pk.in_(val)),
        '$nin': lambda rel, pk, val: ~rel.any(pk.in_(val)),
        '$exists': lambda rel, pk, val: rel.any() if val else ~rel.any(),
    }

    # Operators that want a list
    _operators_require_array_value = frozenset(('$in', '$nin'))

    _boolean_operators = frozenset(('$and', '$or', '$nor', '$not'))

    def input(self, criteria):
        super(FilterHandler, self).input(criteria)
        self.expressions = self._parse_criteria(criteria)
        return self

    def _parse_criteria(self, criteria):
        """ Parse a filter object

        :type criteria: dict | None
        :rtype: list[FilterExpressionBase]
        """
        if not criteria:
            return []
        if not isinstance(criteria, dict):
            raise InvalidQueryError('{} must be either an object, or null'
                                    .format(self.query_object_section_name))

        expressions = []
        for key, value in criteria.items():
            if key in self._boolean_operators:
                expression = self._parse_boolean_operator(key, value)
                if expression is not None:
                    expressions.append(expression)
            elif key.startswith('$'):
                raise InvalidQueryError('{}: unknown operator {}'.format(self.query_object_section_name, key))
            else:
                expressions.extend(self._parse_field(key, value))
        return expressions

    def _parse_field(self, name, conditions):
        """ Parse the conditions for a single field: `{ age: { $gt: 18, $lt: 25 } }`

        :rtype: list[FilterColumnExpression]
        """
        if name not in self.supported_bags:
            raise InvalidColumnError(self.bags.model_name, name, self.query_object_section_name)
        bag_name, bag, column = self.supported_bags[name]

        # Of all relationships, only referenced collections can be filtered
        is_referenced = bag_name == 'rel'
        if is_referenced and not self.bags.relations.is_relationship_array(name):
            raise InvalidColumnError(self.bags.model_name, name, self.query_object_section_name)
        operators = self._operators_referenced if is_referenced else self._operators_scalar

        # A plain value is an equality check
        if not isinstance(conditions, dict):
            conditions = {'$eq': conditions}

        expressions = []
        for operator, value in conditions.items():
            if operator not in operators:
                raise InvalidQueryError('{}: operator {} is not supported for `{}`'
                                        .format(self.query_object_section_name, operator, name))
            if operator in self._operators_require_array_value and not isinstance(value, (list, tuple, set, frozenset)):
                raise InvalidQueryError('{}: {} wants a list for `{}`'
                                        .format(self.query_object_section_name, operator, name))

            if is_referenced:
                expressions.append(FilterReferencedCollectionExpression(
                    name, column, self._get_target_primary_key(name),
                    operator, operators[operator], value))
            else:
                expressions.append(FilterColumnExpression(
                    name, column,
                    operator, operators[operator], value))
        return expressions

    def _get_target_primary_key(self, relation_name):
        """ Get the primary key column of the model a referenced collection points to """
        target_bags = ModelPropertyBags.for_model(self.bags.relations.get_target_model(relation_name))
        (pk_name, pk_column), = target_bags.pk
        return pk_column

    def _parse_boolean_operator(self, op, value):
        """ Parse `{ $or: [ {...}, ... ] }` and the like

        :return: The expression, or None when there's nothing to it (e.g. `{ $or: [] }`)
        :rtype: FilterBooleanExpression | None
        """
        # $not: an object
        if op == '$not':
            if not isinstance(value, dict):
                raise InvalidQueryError('{}: $not wants an object'.format(self.query_object_section_name))
            return FilterBooleanExpression(op, self._parse_criteria(value))

        # $and, $or, $nor: a list of objects
        if not isinstance(value, (list, tuple)):
            raise InvalidQueryError('{}: {} wants a list'.format(self.query_object_section_name, op))
        if not value:
            return None
        return FilterBooleanExpression(op, [self._parse_criteria(nested) for nested in value])

    def compile_statement(self):
        """ Get the WHERE condition

        :rtype: sqlalchemy.sql.elements.ColumnElement
        """
        return FilterExpressionBase.sql_anded_together([e.compile_expression() for e in self.expressions])

    def alter_query(self, query):
        # No conditions, no WHERE
        if not self.expressions:
            return query
        return query.filter(self.compile_statement())
