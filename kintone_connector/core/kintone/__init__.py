"""kintone backend: classifier, REST client, models and object handlers."""
from .client import KintoneClient, build_session
from .errors import KintoneErrorClassifier, PhraseTable, load_phrase_table
from .groups import GroupHandler
from .models import GroupModel, OrganizationModel, UserModel
from .organizations import OrganizationHandler
from .users import UserHandler

__all__ = [
    "KintoneClient",
    "build_session",
    "KintoneErrorClassifier",
    "PhraseTable",
    "load_phrase_table",
    "UserHandler",
    "OrganizationHandler",
    "GroupHandler",
    "UserModel",
    "OrganizationModel",
    "GroupModel",
]
