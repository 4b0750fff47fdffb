from .exceptions import *
