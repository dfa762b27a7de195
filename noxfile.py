import nox.sessions

PYTHON_VERSIONS = ['3.9', '3.10', '3.11', '3.12']
SQLALCHEMY_VERSIONS = [
    '2.0.0',
    '2.0.30',
    '2.1.4',
]


nox.options.reuse_existing_virtualenvs = True
nox.options.sessions = [
    'tests',
    'tests_sqlalchemy',
]


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.sessions.Session, sqlalchemy=None):
    """ Run all tests """
    session.install('-e', '.[test]')

    # Specific package versions
    if sqlalchemy:
        session.install(f'sqlalchemy[asyncio]=={sqlalchemy}')

    # Test
    session.run('pytest', 'tests/', '--cov=docservice')


@nox.session(python=PYTHON_VERSIONS[-1])
@nox.parametrize('sqlalchemy', SQLALCHEMY_VERSIONS)
def tests_sqlalchemy(session: nox.sessions.Session, sqlalchemy):
    """ Test against a specific SqlAlchemy version """
    tests(session, sqlalchemy)
