"""Import builtin tool modules to trigger @register_tool decorators."""
from . import weather
from . import song
from . import confluence
from . import image
from . import postman
