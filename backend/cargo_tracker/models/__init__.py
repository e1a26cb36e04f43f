"""
Entity models.

Each model is built either from inbound request fields (``from_request`` /
``from_profile``) or from a stored document (``from_entity``), and knows how
to render itself for the store (``to_document``) and the wire (``to_wire``).
"""
from cargo_tracker.models.boat import Boat
from cargo_tracker.models.fields import INVALID_NUMBER
from cargo_tracker.models.load import Load
from cargo_tracker.models.user import User

__all__ = ["Boat", "INVALID_NUMBER", "Load", "User"]
