import unittest

from sqlalchemy import inspect
from sqlalchemy.orm import Query, aliased

from docservice import ServiceQuery, ServiceSettingsDict, Reusable, extract_specials, prepare_query, SPECIAL_KEYS
from docservice.exc import InvalidQueryError, InvalidColumnError, DisabledError

from . import models
from .util import TestQueryStringsMixin, q2sql


class QueryStatementsTest(TestQueryStringsMixin, unittest.TestCase):
    """ Test the queries that ServiceQuery builds """

    maxDiff = None

    def test_extract_specials(self):
        query_dict = {
            'age': {'$gte': 18},
            '$sort': '-createdAt',
            '$limit': 0,  # empty
            '$select': None,  # empty
            '$populate': [],  # empty
        }
        specials = extract_specials(query_dict)

        # Only non-empty directives are returned
        self.assertEqual(specials, {'$sort': '-createdAt'})
        # All directives are removed
        self.assertEqual(query_dict, {'age': {'$gte': 18}})

        # Nothing to extract
        self.assertEqual(extract_specials({}), {})

        # The order
        self.assertEqual(SPECIAL_KEYS, ('$select', '$populate', '$sort', '$skip', '$limit'))

    def test_prepare_query(self):
        # Directives are applied
        q = prepare_query(Query([models.User]), {'$sort': '-createdAt', '$limit': 5, '$skip': 10})
        self.assertQuery(q,
                         'FROM u',
                         'ORDER BY u.created_at DESC',
                         'LIMIT 5',
                         'OFFSET 10')

        # Unknown keys and empty values are ignored
        q = prepare_query(Query([models.User]), {'$sort': '', '$limit': None, '$nope': 1, 'age': 1})
        self.assertNotInQuery(q, 'ORDER BY', 'LIMIT', 'WHERE')

        # Settings apply
        q = prepare_query(Query([models.User]), {'$limit': 50}, max_items=10)
        self.assertQuery(q, 'LIMIT 10')

        # Explicit model
        q = prepare_query(Query([models.Article]), {'$sort': 'title'}, model=models.Article)
        self.assertQuery(q, 'ORDER BY a.title')

        # Errors
        self.assertRaises(InvalidColumnError, prepare_query, Query([models.User]), {'$sort': 'nope'})

    def test_find_query(self):
        q = ServiceQuery(models.User).query({'name': 'x', '$sort': '-createdAt', '$limit': 5}).end()
        self.assertQuery(q,
                         'WHERE u.name = x',
                         'ORDER BY u.created_at DESC',
                         'LIMIT 5')
        self.assertNotInQuery(q, 'OFFSET', '$')

    def test_order_does_not_matter(self):
        """ The handlers apply in a fixed order, no matter how the keys are ordered """
        qs1 = q2sql(ServiceQuery(models.User).query({
            'age': {'$gt': 1},
            '$sort': 'age',
            '$skip': 1,
            '$limit': 2,
        }).end())
        qs2 = q2sql(ServiceQuery(models.User).query({
            '$limit': 2,
            '$skip': 1,
            '$sort': 'age',
            'age': {'$gt': 1},
        }).end())
        self.assertEqual(qs1, qs2)
        self.assertQuery(qs1,
                         'WHERE u.age > 1',
                         'ORDER BY u.age',
                         'LIMIT 2',
                         'OFFSET 1')

    def test_service_query(self):
        # Empty query
        self.assertEqual(q2sql(ServiceQuery(models.User).query(None).end()),
                         q2sql(Query([models.User])))

        # from_query(): pre-filtered query
        q = ServiceQuery(models.User).from_query(Query([models.User]).filter(models.User.age > 18)) \
            .query({'name': 'a'}).end()
        self.assertQuery(q, 'u.age > 18', 'u.name = a')

        # The final query object, as the handlers have understood it
        sq = ServiceQuery(models.User).query({
            'age': 1,
            '$select': 'name',
            '$populate': ['tags', 'articles title'],
            '$sort': {'age': -1},
            '$limit': '5',
        })
        self.assertEqual(sq.get_final_query_object(), {
            '$select': ['name'],
            '$populate': ['tags', 'articles title'],
            '$sort': ['-age'],
            '$limit': 5,
        })
        self.assertEqual(sq.populated, {'tags', 'articles'})
        self.assertEqual(repr(sq), 'ServiceQuery(User)')

        # Errors
        self.assertRaises(InvalidQueryError, ServiceQuery(models.User).query, 'age')
        self.assertRaises(InvalidColumnError, ServiceQuery(models.User).query, {'nope': 1})
        self.assertRaises(AssertionError, ServiceQuery, aliased(models.User))

    def test_settings(self):
        # Disabled handlers
        sq = lambda **settings: ServiceQuery(models.User, settings)

        self.assertRaises(DisabledError, sq(sort_enabled=False).query, {'$sort': 'age'})
        self.assertRaises(DisabledError, sq(filter_enabled=False).query, {'age': 1})
        self.assertRaises(DisabledError, sq(populate_enabled=False).query, {'$populate': 'tags'})
        sq(sort_enabled=False).query({'$sort': ''})  # empty input is fine
        self.assertFalse(sq(sort_enabled=False).handler_settings.is_handler_enabled('sort'))
        self.assertTrue(sq(sort_enabled=False).handler_settings.is_handler_enabled('limit'))
        sq(filter_enabled=False).query({'$limit': 1})  # other handlers are fine

        # max_items, default_limit
        self.assertQuery(sq(max_items=10).query({}).end(), 'LIMIT 10')
        self.assertQuery(sq(default_limit=3).query({}).end(), 'LIMIT 3')
        self.assertQuery(sq(default_limit=3).query({'$limit': 7}).end(), 'LIMIT 7')

        # Typos in settings
        self.assertRaises(KeyError, sq, max_itemz=10)
        self.assertRaises(KeyError, sq, related={'nope': {}})

        # ServiceSettingsDict
        settings = ServiceSettingsDict(max_items=10, allowed_relations=('tags',))
        self.assertEqual(settings['max_items'], 10)
        self.assertEqual(settings['sort_enabled'], True)
        self.assertEqual(settings.and_more(max_items=5)['max_items'], 5)
        self.assertEqual(settings['max_items'], 10)
        self.assertEqual(ServiceSettingsDict.pluck_from({'max_items': 1, 'unknown': 2})['max_items'], 1)

        # ServiceQuery only takes the handlers' settings
        handler_settings = dict(settings)
        del handler_settings['writable_properties'], handler_settings['protected_fields']
        self.assertRaises(DisabledError, sq(**handler_settings).query, {'$populate': 'articles'})

        # Related settings: by name, or '*'
        query = sq(related={
            'tags': dict(max_items=1),
            '*': lambda relation_name, target_model: dict(max_items=2),
        })
        self.assertEqual(query.settings_for_related_model('tags'), {'max_items': 1})
        self.assertEqual(query.settings_for_related_model('articles'), {'max_items': 2})
        self.assertEqual(sq(related={'tags': lambda: dict(max_items=3)}).settings_for_related_model('tags'),
                         {'max_items': 3})
        self.assertEqual(sq().settings_for_related_model('tags'), {})

    def test_reusable(self):
        rq = Reusable(ServiceQuery(models.User, dict(max_items=10)))

        q1 = rq.query({'$sort': 'age'}).end()
        q2 = rq.query({'$sort': '-age', '$limit': 5}).end()
        self.assertQuery(q1, 'ORDER BY u.age', 'LIMIT 10')
        self.assertQuery(q2, 'ORDER BY u.age DESC', 'LIMIT 5')


class QueryTest(unittest.IsolatedAsyncioTestCase):
    """ Run queries against a database """

    async def asyncSetUp(self):
        self.engine, self.Session = await models.get_working_db_for_tests()

    async def asyncTearDown(self):
        await self.engine.dispose()

    async def _query(self, query_dict, model=models.User):
        async with self.Session() as ssn:
            return await ssn.run_sync(
                lambda ssn: ServiceQuery(model).with_session(ssn).query(query_dict).end().all()
            )

    async def test_filter_sort_slice(self):
        users = await self._query({'age': {'$gte': 18}, '$sort': '-age'})
        self.assertEqual([u.id for u in users], [2, 1])

        users = await self._query({'$sort': '-createdAt'})
        self.assertEqual([u.id for u in users], [2, 3, 1])

        users = await self._query({'$sort': 'id', '$skip': 1, '$limit': 1})
        self.assertEqual([u.id for u in users], [2])

        users = await self._query({'$or': [{'name': 'a'}, {'age': 16}], '$sort': 'id'})
        self.assertEqual([u.id for u in users], [1, 3])

        users = await self._query({'tags': 1})
        self.assertEqual([u.id for u in users], [1])

        users = await self._query({'tags': {'$exists': False}, '$sort': 'id'})
        self.assertEqual([u.id for u in users], [2, 3])

    async def test_select_populate(self):
        # Only some columns are loaded
        user, = await self._query({'id': 1, '$select': 'name'})
        self.assertEqual(inspect(user).unloaded, {'age', 'createdAt', 'data', 'addresses', 'tags', 'articles'})

        user, = await self._query({'id': 1, '$select': '-data -addresses'})
        self.assertEqual(inspect(user).unloaded, {'data', 'addresses', 'tags', 'articles'})

        # Relationships are loaded
        user, = await self._query({'id': 1, '$populate': 'tags'})
        self.assertEqual(inspect(user).unloaded, {'articles'})
        self.assertEqual([t.name for t in inspect(user).dict['tags']], ['red'])

        # Relationships with a projection
        user, = await self._query({'id': 1, '$populate': 'articles title'})
        articles = inspect(user).dict['articles']
        self.assertEqual([a.title for a in articles], ['Alpha', 'Beta'])
        self.assertIn('body', inspect(articles[0]).unloaded)
