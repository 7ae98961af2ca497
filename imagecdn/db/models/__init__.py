from imagecdn.db.models.content import Content

__all__ = ["Content"]
