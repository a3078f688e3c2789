import os

# Precisa rodar antes de importar kitchen_auth.core.config
os.environ.setdefault("ENV", "test")
os.environ["AUTH_FAILURE_DELAY_MIN_MS"] = "0"
os.environ["AUTH_FAILURE_DELAY_MAX_MS"] = "0"
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
