from dnsboard.config.database import ConfigDatabase
from dnsboard.config.settings import load_settings
from dnsboard.main import MODELS

if __name__ == "__main__":
    settings = load_settings()
    ConfigDatabase.bind(settings.database_url)
    db_config = ConfigDatabase(models=MODELS)

    try:
        print("Connecting to the database...")
        ConfigDatabase.database.connect()
        db_config.refresh_tables()
        print("Tables created successfully!")
    finally:
        ConfigDatabase.database.close()
