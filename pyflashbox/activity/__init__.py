from .activity import Wilson
