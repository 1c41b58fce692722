# bakery_bliss/config.py

"""
Settings read from the environment (and a local .env file, if present)
"""

import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()

# Build paths inside the project like this: os.path.join(BASE_DIR, ...)
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{os.path.join(BASE_DIR, 'database.db')}")

# "memory" keeps events in-process, "rabbitmq" pushes them to the broker
NOTIFICATION_BACKEND = os.getenv("NOTIFICATION_BACKEND", "memory")
RABBITMQ_HOST = os.getenv("RABBITMQ_HOST", "localhost")
RABBITMQ_EXCHANGE = os.getenv("RABBITMQ_EXCHANGE", "events")
# How many recent events the in-memory backend keeps
EVENT_BUFFER_SIZE = int(os.getenv("EVENT_BUFFER_SIZE", "1000"))

# Commission rates are business configuration, not invariants
JUNIOR_BAKER_RATE = Decimal(os.getenv("JUNIOR_BAKER_RATE", "0.15"))
MAIN_BAKER_RATE = Decimal(os.getenv("MAIN_BAKER_RATE", "0.20"))
RUSH_BONUS_RATE = Decimal(os.getenv("RUSH_BONUS_RATE", "0.10"))

ORDER_DEADLINE_HOURS = int(os.getenv("ORDER_DEADLINE_HOURS", "24"))
RUSH_DEADLINE_HOURS = int(os.getenv("RUSH_DEADLINE_HOURS", "12"))
