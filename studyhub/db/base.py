from studyhub.db.base_class import Base

# Import ALL models so SQLAlchemy registers them
from studyhub.models.profile import Profile  # noqa: F401
from studyhub.models.study_group import StudyGroup  # noqa: F401
from studyhub.models.group_membership import GroupMembership  # noqa: F401
