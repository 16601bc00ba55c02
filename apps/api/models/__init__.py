"""Models package."""

from .user import User
from .profile import Profile
from .country import Country
from .city import City
from .content import Content, ContentStatus, ContentType
from .content_location import ContentLocation
from .external_resource import ExternalResource
