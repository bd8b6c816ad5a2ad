from sqlalchemy import String, func, literal

from app.config import FORUM_DEFAULT_AVATAR_URL
from app.models.user_model import User


def author_name_expr(user_id_col):
    """Linked user's name, or ``User <id>`` when the user row is missing or blank.

    Meant for queries that LEFT JOIN ``User`` on ``user_id_col``.
    """
    placeholder = literal("User ", String) + user_id_col
    return func.coalesce(func.nullif(func.trim(User.name), ""), placeholder)


def avatar_url_expr():
    return func.coalesce(User.profile_image_url, literal(FORUM_DEFAULT_AVATAR_URL, String))
