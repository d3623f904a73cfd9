"""
Provides support for data commands

Data commands are the collaborator CRUD and read paths. They never feed a bid acceptance decision, which is always
made by the bidding commands inside the lot's atomic scope.
"""

from abc import ABC

from sqlalchemy.orm import sessionmaker


class SqlAlchemySupport(ABC):
    """
    SqlAlchemySupport
    """

    # pylint: disable=too-few-public-methods

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
