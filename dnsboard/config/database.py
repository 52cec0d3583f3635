import json
from typing import List
from urllib.parse import urlparse

from peewee import DatabaseProxy, Model, SqliteDatabase, TextField
from playhouse.db_url import connect


class ConfigDatabase:

    database = DatabaseProxy()

    def __init__(self, models: List[type]):
        self.models = models

    @classmethod
    def bind(cls, url: str):
        """Point the shared proxy at the database described by ``url``."""
        if urlparse(url).scheme == "sqlite":
            path = url[len("sqlite:///"):] or ":memory:"
            # sqlite leaves foreign keys off unless asked, and cascades rely on them
            database = SqliteDatabase(path, pragmas={"foreign_keys": 1})
        else:
            database = connect(url)
        cls.database.initialize(database)
        return database

    def refresh_tables(self):
        self.database.create_tables(self.models, safe=True)


class BaseModel(Model):
    class Meta:
        database = ConfigDatabase.database


class JSONField(TextField):
    def db_value(self, value):
        return json.dumps(value) if value is not None else None

    def python_value(self, value):
        return json.loads(value) if value is not None else None
