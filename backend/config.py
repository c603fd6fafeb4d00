import os


def _flag(name, default):
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///satrapy.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Room lobby limits
    ROOM_CAPACITY = int(os.environ.get('ROOM_CAPACITY', '12'))
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '6'))
    ROOM_CODE_ATTEMPTS = int(os.environ.get('ROOM_CODE_ATTEMPTS', '50'))
    MAX_PER_FACTION = int(os.environ.get('MAX_PER_FACTION', '3'))
    MIN_TO_START = int(os.environ.get('MIN_TO_START', '6'))
    # Espionage timing (milliseconds) and catch probability
    SPY_DELAY_MS = int(os.environ.get('SPY_DELAY_MS', '2000'))
    SPY_CATCH_CHANCE = float(os.environ.get('SPY_CATCH_CHANCE', '0.2'))
    UPGRADE_FOOD_COST = int(os.environ.get('UPGRADE_FOOD_COST', '10'))
    # Resolve gather/march movements when they arrive
    RESOLVE_MOVEMENTS = _flag('RESOLVE_MOVEMENTS', 'true')
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/ws')
