"""ORM models, enums and API schemas."""

from .tables import (  # noqa: F401
    Account,
    Group,
    GroupMember,
    Notification,
    Record,
    Split,
    SplitParticipant,
    UnclassifiedNote,
    User,
    UserLexicon,
)
