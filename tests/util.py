from sqlalchemy import event
from sqlalchemy.orm import Query
from sqlalchemy.dialects.postgresql.psycopg2 import PGDialect_psycopg2


def stmt2sql(stmt, *, literal: bool = False) -> str:
    """ Render a statement as PostgreSQL, with parameters pasted in unquoted: for reading, not for running

        The dialect is pinned to psycopg2: other drivers add casts to bound parameters (`%(age_1)s::INTEGER`)
    """
    compiled = stmt.compile(dialect=PGDialect_psycopg2(), compile_kwargs={'literal_binds': literal})
    return compiled.string % compiled.params


def q2sql(q: Query, *, literal: bool = False) -> str:
    return stmt2sql(q.statement, literal=literal)


class TestQueryStringsMixin:
    """ Assertions on the SQL of a Query """

    def assertQuery(self, qs, *expected_lines, literal: bool = False):
        """ Every piece must be found in the SQL

            A piece may span several lines: each line is looked up separately, without the trailing comma.

            :param qs: A Query, or its SQL
            :return: the SQL
        """
        if isinstance(qs, Query):
            qs = q2sql(qs, literal=literal)
        for piece in '\n'.join(expected_lines).splitlines():
            self.assertIn(piece.strip().rstrip(','), qs)
        return qs

    def assertNotInQuery(self, qs, *unexpected):
        """ None of the pieces may be found in the SQL """
        if isinstance(qs, Query):
            qs = q2sql(qs)
        for piece in unexpected:
            self.assertNotIn(piece, qs)
        return qs


class QueryCounter:
    """ Counts the statements an engine executes

        with QueryCounter(engine) as counter:
            ...
        counter.n  #-> 1
    """

    def __init__(self, engine):
        # AsyncEngine has no events: they are on its sync_engine
        self.engine = getattr(engine, 'sync_engine', engine)
        self.n = 0

    def _count(self, *args, **kwargs):
        self.n += 1

    def __enter__(self):
        event.listen(self.engine, 'after_cursor_execute', self._count)
        return self

    def __exit__(self, *exc):
        event.remove(self.engine, 'after_cursor_execute', self._count)
        return False
