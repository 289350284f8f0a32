from .session_entry import SessionEntry

__all__ = ["SessionEntry"]
