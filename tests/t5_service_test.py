import unittest
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from docservice import Service, ServiceRegistry
from docservice.exc import ServiceError, BadRequest, NotFound, InvalidQueryError, InvalidColumnError, DisabledError

from . import models


class ServiceTestBase(unittest.IsolatedAsyncioTestCase):
    """ Base for tests that work with services """

    async def asyncSetUp(self):
        self.engine, self.Session = await models.get_working_db_for_tests()

        self.users = Service(models.User, self.Session)
        self.tags = Service(models.Tag, self.Session)
        self.articles = Service(models.Article, self.Session)

    async def asyncTearDown(self):
        await self.engine.dispose()

    @staticmethod
    def ids(documents):
        return [d['id'] for d in documents]


class ServiceTest(ServiceTestBase):
    """ Test the CRUD operations """

    maxDiff = None

    async def test_find(self):
        # All
        users = await self.users.find()
        self.assertEqual(sorted(self.ids(users)), [1, 2, 3])
        self.assertEqual(await self.users.find({}), users)
        self.assertEqual(await self.users.find({'query': None}), users)

        # Documents are dicts
        user = next(u for u in users if u['id'] == 1)
        self.assertEqual(user, {
            'id': 1,
            'name': 'a',
            'age': 18,
            'createdAt': datetime(2020, 1, 1),
            'data': {'rating': 5, 'o': {'a': True}},
            'addresses': [{'id': 'home', 'city': 'Oslo'}],
        })

        # Filter, sort
        users = await self.users.find({'query': {'age': {'$gte': 18}, '$sort': 'id'}})
        self.assertEqual(self.ids(users), [1, 2])

        users = await self.users.find({'query': {'$sort': '-createdAt'}})
        self.assertEqual(self.ids(users), [2, 3, 1])

        # Pagination
        users = await self.users.find({'query': {'$sort': 'id', '$skip': 1, '$limit': 1}})
        self.assertEqual(self.ids(users), [2])

        users = await self.users.find({'query': {'$sort': 'id', '$skip': '2', '$limit': '10'}})
        self.assertEqual(self.ids(users), [3])

        # Referenced collections
        users = await self.users.find({'query': {'tags': 1}})
        self.assertEqual(self.ids(users), [1])

        users = await self.users.find({'query': {'articles': {'$in': [12]}}})
        self.assertEqual(self.ids(users), [2])

        users = await self.users.find({'query': {'articles': {'$exists': False}}})
        self.assertEqual(self.ids(users), [3])

    async def test_find_select_populate(self):
        # $select: only the loaded fields are returned
        users = await self.users.find({'query': {'$select': 'name', '$sort': 'id'}})
        self.assertEqual(users, [
            {'id': 1, 'name': 'a'},
            {'id': 2, 'name': 'b'},
            {'id': 3, 'name': 'c'},
        ])

        users = await self.users.find({'query': {'$select': '-data -addresses -createdAt', '$sort': 'id', '$limit': 1}})
        self.assertEqual(users, [{'id': 1, 'name': 'a', 'age': 18}])

        # $populate
        users = await self.users.find({'query': {'$select': 'name', '$populate': 'tags', '$sort': 'id'}})
        self.assertEqual(users, [
            {'id': 1, 'name': 'a', 'tags': [{'id': 1, 'name': 'red'}]},
            {'id': 2, 'name': 'b', 'tags': []},
            {'id': 3, 'name': 'c', 'tags': []},
        ])

        # $populate with a projection
        user, = await self.users.find({'query': {'id': 1, '$populate': 'articles title'}})
        self.assertEqual([a['title'] for a in user['articles']], ['Alpha', 'Beta'])
        self.assertEqual([a['id'] for a in user['articles']], [10, 11])
        self.assertNotIn('body', user['articles'][0])

        # $populate a scalar relationship
        articles = await self.articles.find({'query': {'$populate': 'user name', '$sort': 'id'}})
        self.assertEqual([a['user']['name'] for a in articles], ['a', 'a', 'b'])

    async def test_populate_does_not_carry_over(self):
        """ Every request to the same service starts with a clean $populate """
        user, = await self.users.find({'query': {'id': 1, '$populate': 'tags'}})
        self.assertEqual(user['tags'], [{'id': 1, 'name': 'red'}])

        user, = await self.users.find({'query': {'id': 1}})
        self.assertNotIn('tags', user)

        user = await self.users.get(1)
        self.assertNotIn('tags', user)

        # Projections of the same relationship are not merged across requests
        user, = await self.users.find({'query': {'id': 1, '$populate': 'articles title'}})
        self.assertNotIn('body', user['articles'][0])

        user, = await self.users.find({'query': {'id': 1, '$populate': 'articles body'}})
        self.assertIn('body', user['articles'][0])
        self.assertNotIn('title', user['articles'][0])

    async def test_find_errors(self):
        with self.assertRaises(InvalidColumnError) as e:
            await self.users.find({'query': {'nope': 1}})
        self.assertEqual(e.exception.code, 400)
        self.assertEqual(e.exception.data, {'model': 'User', 'column': 'nope', 'where': 'filter'})

        with self.assertRaises(InvalidColumnError):
            await self.users.find({'query': {'$sort': 'nope'}})

        with self.assertRaises(InvalidQueryError):
            await self.users.find({'query': {'$sort': ['']}})

        with self.assertRaises(InvalidQueryError):
            await self.users.find({'query': {'$limit': 'many'}})

        with self.assertRaises(InvalidQueryError):
            await self.users.find('query')

        with self.assertRaises(InvalidQueryError):
            await self.users.find({'query': 'age=1'})

    async def test_settings(self):
        # max_items
        users = Service(models.User, self.Session, max_items=2)
        self.assertEqual(len(await users.find()), 2)
        self.assertEqual(len(await users.find({'query': {'$limit': 10}})), 2)

        # Disabled handlers
        users = Service(models.User, self.Session, limit_enabled=False, banned_relations=('articles',))
        with self.assertRaises(DisabledError):
            await users.find({'query': {'$limit': 1}})
        with self.assertRaises(DisabledError):
            await users.find({'query': {'$populate': 'articles'}})
        self.assertEqual(len(await users.find({'query': {'$populate': 'tags'}})), 3)

        # Typos
        with self.assertRaises(KeyError):
            Service(models.User, self.Session, max_itemz=2)

    async def test_get(self):
        user = await self.users.get(1)
        self.assertEqual(user['name'], 'a')

        # Ids are cast to the type of the primary key
        self.assertEqual(await self.users.get('1'), user)

        # Directives
        user = await self.users.get(1, {'query': {'$select': 'name', '$populate': 'tags'}})
        self.assertEqual(user, {'id': 1, 'name': 'a', 'tags': [{'id': 1, 'name': 'red'}]})

        # The filter also applies
        self.assertEqual((await self.users.get(1, {'query': {'age': 18}}))['id'], 1)
        with self.assertRaises(NotFound):
            await self.users.get(1, {'query': {'age': {'$lt': 10}}})

        # Not found
        with self.assertRaises(NotFound) as e:
            await self.users.get(99)
        self.assertEqual(e.exception.message, 'No record found for id 99')
        self.assertEqual(e.exception.code, 404)

        with self.assertRaises(NotFound):
            await self.users.get('abc')

    async def test_create(self):
        # A single document
        user = await self.users.create({'name': 'd', 'age': 30})
        self.assertEqual(user['id'], 4)
        self.assertEqual(user['name'], 'd')
        self.assertEqual(user['addresses'], [])  # default
        self.assertIsInstance(user['createdAt'], datetime)  # default
        self.assertEqual(await self.users.get(4), user)

        # `_id` is ignored
        user = await self.users.create({'_id': 100, 'name': 'e'})
        self.assertEqual(user['id'], 5)

        # Writable properties, embedded documents
        user = await self.users.create({'nickname': 'f', 'addresses': [{'city': 'Rome'}]})
        self.assertEqual(user['name'], 'f')
        self.assertEqual(user['addresses'][0]['city'], 'Rome')
        self.assertIn('id', user['addresses'][0])

        # A list of documents
        users = await self.users.create([{'name': 'g'}, {'name': 'h'}])
        self.assertEqual([u['name'] for u in users], ['g', 'h'])
        self.assertEqual(self.ids(users), [7, 8])

        # Errors
        with self.assertRaises(InvalidColumnError):
            await self.users.create({'nope': 1})
        with self.assertRaises(BadRequest):
            await self.users.create({'tags': [1]})
        self.assertEqual(len(await self.users.find()), 8)

    async def test_create_is_atomic(self):
        """ When any document fails, none is created """
        with self.assertRaises(IntegrityError):
            await self.tags.create([{'name': 'blue'}, {'name': None}])
        self.assertEqual(sorted(self.ids(await self.tags.find())), [1, 2])

    async def test_update(self):
        # Fields are merged; identifiers are stripped
        user = await self.users.update(1, {'id': 100, '_id': 100, 'name': 'z', 'data': {'x': 1}})
        self.assertEqual(user['id'], 1)
        self.assertEqual(user['name'], 'z')
        self.assertEqual(user['age'], 18)
        self.assertEqual(user['data'], {'rating': 5, 'o': {'a': True}, 'x': 1})

        # Persisted
        self.assertEqual(await self.users.get(1), user)
        with self.assertRaises(NotFound):
            await self.users.get(100)

        # Writable properties
        user = await self.users.update('1', {'nickname': 'nick'})
        self.assertEqual(user['name'], 'nick')

        # Protected fields
        users = Service(models.User, self.Session, protected_fields=('age',))
        user = await users.update(1, {'age': 99, 'name': 'y'})
        self.assertEqual((user['age'], user['name']), (18, 'y'))

        # Errors
        with self.assertRaises(NotFound):
            await self.users.update(99, {'name': 'x'})
        with self.assertRaises(InvalidColumnError):
            await self.users.update(1, {'nope': 1})

    async def test_remove(self):
        user = await self.users.remove(2)
        self.assertEqual(user['name'], 'b')
        with self.assertRaises(NotFound):
            await self.users.get(2)
        self.assertEqual(sorted(self.ids(await self.users.find())), [1, 3])

        # Not found: nothing to remove
        self.assertIsNone(await self.users.remove(99))

        # Referenced documents are kept, but unlinked
        await self.users.remove(1)
        self.assertEqual(self.ids(await self.tags.find({'query': {'$sort': 'id'}})), [1, 2])
        self.assertIsNone((await self.articles.get(10))['uid'])

    async def test_logging(self):
        with self.assertLogs('docservice.service', 'DEBUG') as logs:
            with self.assertRaises(NotFound):
                await self.users.get(99)
        self.assertTrue(any('no record found for id 99' in line for line in logs.output))


class ServiceRegistryTest(ServiceTestBase):
    """ Test the application """

    async def test_registry(self):
        app = ServiceRegistry()

        # use()
        self.assertIs(app.use('/users/', self.users), self.users)
        self.assertIs(self.users.app, app)
        app.use('tags', self.tags)

        # service()
        self.assertIs(app.service('users'), self.users)
        self.assertIs(app.service('/users'), self.users)
        self.assertIs(self.users.service('tags'), self.tags)
        with self.assertRaises(NotFound):
            app.service('nope')

        # setup() twice
        self.users.setup(app)
        with self.assertRaises(ValueError):
            ServiceRegistry().use('users', self.users)

        # Not set up
        with self.assertRaises(RuntimeError):
            self.articles.service('users')

        # Services work through the app
        self.assertEqual((await app.service('users').get(1))['name'], 'a')

    def test_errors(self):
        self.assertEqual(NotFound('x').to_dict(), {'name': 'NotFound', 'message': 'x', 'code': 404, 'data': None})
        self.assertEqual(InvalidQueryError('bad').message, 'Query object error: bad')
        self.assertIsInstance(DisabledError('x'), InvalidQueryError)
        self.assertIsInstance(InvalidColumnError('User', 'x', 'filter'), BadRequest)
        self.assertIsInstance(BadRequest('x'), ServiceError)
        self.assertEqual(ServiceError('x').code, 500)
