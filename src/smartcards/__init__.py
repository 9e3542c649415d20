from smartcards.consts import VERSION

__version__ = VERSION
